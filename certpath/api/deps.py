"""
FastAPI dependencies for database sessions and engine services.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from certpath.config import get_settings
from certpath.database import get_db
from certpath.engines.assessment.assessment_service import AssessmentService

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_assessment_service(db: DbSession) -> AssessmentService:
    """Assessment service bound to the request's unit of work."""
    return AssessmentService(db, settings=get_settings())


AssessmentSvc = Annotated[AssessmentService, Depends(get_assessment_service)]
