import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
import sentry_sdk

from skillgate.api.v1.health import router as health_router
from skillgate.api.v1.assessments import router as assessments_router
from skillgate.api.v1.job_assessments import router as job_assessments_router
from skillgate.api.v1.matching import router as matching_router
from skillgate.api.v1.applications import router as applications_router
from skillgate.api.v1.ingest import router as ingest_router
from skillgate.core.config import settings
from skillgate.core.cors import cors_allow_credentials, cors_allowed_origins
from skillgate.core.errors import ErrorKind
from skillgate.core.lifespan import lifespan
from skillgate.core.rate_limit import limiter, rate_limit_exceeded_handler

logging.basicConfig(level=settings.log_level, format="%(message)s")
if settings.sentry_dsn:
    sentry_sdk.init(dsn=settings.sentry_dsn)

app = FastAPI(title="Skillgate API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_allowed_origins(),
    allow_credentials=cors_allow_credentials(),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=422,
        content={
            "detail": {
                "kind": ErrorKind.VALIDATION.value,
                "code": "VALIDATION",
                "message": f"{location}: {message}" if location else message,
            }
        },
    )


app.include_router(health_router, prefix="/v1", tags=["Health"])
app.include_router(assessments_router, prefix="/v1", tags=["Skill Assessments"])
app.include_router(matching_router, prefix="/v1", tags=["Matching"])
app.include_router(job_assessments_router, prefix="/v1", tags=["Job Assessments"])
app.include_router(applications_router, prefix="/v1", tags=["Applications"])
app.include_router(ingest_router, prefix="/v1", tags=["Ingest"])
