from contextlib import asynccontextmanager
import logging

from skillgate.services.question_supply import get_default_question_supply
from skillgate.storage.db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    init_db()
    supply = get_default_question_supply()
    if supply is None:
        logger.warning("skill_assessments_disabled reason=no_question_supply")
    yield
