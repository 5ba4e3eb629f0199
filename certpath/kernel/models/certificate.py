"""
Certificate model - minted once per qualifying assessment.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from certpath.kernel.models.base import Base, TimestampMixin, as_utc, generate_uuid, utcnow


class CertificateStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class Certificate(Base, TimestampMixin):
    """
    Issued certificate.

    assessment_id and certificate_number are both unique; inserts rely on
    those constraints to stay idempotent under retries.
    """

    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    certificate_number: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    level: Mapped[str] = mapped_column(String(2), nullable=False)
    step: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    competencies: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=CertificateStatus.ACTIVE.value,
        nullable=False,
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_certificates_level", "level"),
        Index("ix_certificates_issued_at", "issued_at"),
    )

    def is_valid_at(self, now: Optional[datetime] = None) -> bool:
        """Active and not past valid_until."""
        if self.status != CertificateStatus.ACTIVE.value:
            return False
        if self.valid_until is None:
            return True
        return as_utc(self.valid_until) > (now or utcnow())

    def __repr__(self) -> str:
        return f"<Certificate {self.certificate_number}>"
