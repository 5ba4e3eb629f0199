"""
Certificate store - insert-if-absent keyed on the source assessment.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from certpath.exceptions import NotFoundError, PersistenceError
from certpath.kernel.models.certificate import Certificate

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class CertificateStore:
    """Persistence for certificates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, values: Dict[str, Any]) -> Optional[Certificate]:
        """
        Insert a certificate unless one conflicts on a unique column.

        Returns the new certificate, or None when the insert was skipped
        because assessment_id or certificate_number already exists.
        """
        dialect = self.session.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise PersistenceError(f"Unsupported database dialect for certificates: {dialect}")

        stmt = (
            insert(Certificate)
            .values(**values)
            .on_conflict_do_nothing()
            .returning(Certificate.id)
        )
        result = await self.session.execute(stmt)
        new_id = result.scalar_one_or_none()
        if new_id is None:
            return None
        return await self.get(new_id)

    async def get(self, certificate_id: uuid.UUID) -> Certificate:
        certificate = await self.session.get(Certificate, certificate_id)
        if certificate is None:
            raise NotFoundError("Certificate", certificate_id)
        return certificate

    async def find_by_assessment_id(self, assessment_id: uuid.UUID) -> Optional[Certificate]:
        result = await self.session.execute(
            select(Certificate).where(Certificate.assessment_id == assessment_id)
        )
        return result.scalar_one_or_none()

    async def find_by_number(self, certificate_number: str) -> Optional[Certificate]:
        result = await self.session.execute(
            select(Certificate).where(Certificate.certificate_number == certificate_number.upper())
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: uuid.UUID) -> List[Certificate]:
        """User's certificates, newest first."""
        result = await self.session.execute(
            select(Certificate)
            .where(Certificate.user_id == user_id)
            .order_by(desc(Certificate.issued_at))
        )
        return list(result.scalars().all())
