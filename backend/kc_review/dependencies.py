from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kc_review.config import settings
from kc_review.database import get_db, get_session_factory
from kc_review.review_workflow.service import ReviewService

# Re-export for use in Depends()
get_db = get_db
get_session_factory = get_session_factory


def get_review_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ReviewService:
    return ReviewService(session_factory, settings)
