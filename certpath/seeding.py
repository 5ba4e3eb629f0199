"""
Setup routines: service account and question pool seeding.
"""

from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, Field
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from certpath.kernel.events.event_store import EventStore
from certpath.kernel.models.event_log import EventType
from certpath.kernel.models.question import Question
from certpath.kernel.models.user import User, UserRole
from certpath.kernel.stores.question_store import QuestionPool
from certpath.kernel.stores.user_store import UserProgressionStore
from certpath.logging_config import get_logger
from certpath.schemas.question import QuestionCreate

logger = get_logger(__name__)


class ServiceAccount(BaseModel):
    """Account that owns seeded content."""

    email: str = Field(min_length=3, max_length=255)
    full_name: str = Field(min_length=1, max_length=255)
    role: UserRole = UserRole.ADMIN


async def ensure_service_account(session: AsyncSession, account: ServiceAccount) -> User:
    """Return the user with the account's email, creating it if missing."""
    email = account.email.lower().strip()
    user = await UserProgressionStore(session).get_user_by_email(email)
    if user is not None:
        return user

    user = User(email=email, full_name=account.full_name, role=account.role.value)
    session.add(user)
    await session.flush()
    logger.info("Service account created", extra={"email": email, "role": account.role.value})
    return user


async def seed_questions(
    session: AsyncSession,
    items: Iterable[Union[QuestionCreate, Mapping[str, Any]]],
    created_by: Optional[User] = None,
    replace_existing: bool = False,
) -> List[Question]:
    """
    Validate and insert questions.

    Args:
        session: Database session (caller commits)
        items: QuestionCreate instances or raw dicts in the same shape
        created_by: Owning service account
        replace_existing: Deactivate every currently active question first.
            Old rows stay so past assessments can still be read back.

    Returns:
        The inserted questions
    """
    validated = [
        item if isinstance(item, QuestionCreate) else QuestionCreate.model_validate(item)
        for item in items
    ]

    if replace_existing:
        result = await session.execute(
            update(Question).where(Question.is_active.is_(True)).values(is_active=False)
        )
        logger.info("Deactivated existing questions", extra={"count": result.rowcount})

    owner_id = created_by.id if created_by is not None else None
    questions = await QuestionPool(session).add_questions(validated, created_by=owner_id)

    if owner_id is not None:
        by_level = {}
        for q in questions:
            by_level[q.level] = by_level.get(q.level, 0) + 1
        await EventStore(session).log(
            event_type=EventType.QUESTIONS_SEEDED,
            entity_type="user",
            entity_id=owner_id,
            user_id=owner_id,
            payload={"count": len(questions), "by_level": by_level, "replaced": replace_existing},
        )
    logger.info("Questions seeded", extra={"count": len(questions)})
    return questions
