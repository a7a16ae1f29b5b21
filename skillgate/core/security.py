from __future__ import annotations

from fastapi import Header, HTTPException, status

from skillgate.core.config import settings


def check_api_key(x_api_key: str | None) -> None:
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "kind": "UNAUTHORIZED",
                "code": "INVALID_API_KEY",
                "message": "Please provide a valid API key.",
            },
        )


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    check_api_key(x_api_key)


def current_candidate_id(
    x_candidate_id: str | None = Header(default=None, alias="X-Candidate-Id"),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> str:
    """Resolve the calling candidate forwarded by the upstream auth layer."""
    check_api_key(x_api_key)
    candidate_id = (x_candidate_id or "").strip()
    if not candidate_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "kind": "UNAUTHORIZED",
                "code": "CANDIDATE_REQUIRED",
                "message": "X-Candidate-Id header is required.",
            },
        )
    return candidate_id
