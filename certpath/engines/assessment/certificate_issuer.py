"""
Certificate Issuer - mints at most one certificate per qualifying assessment.
"""

import random
import string
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from certpath.config import Settings, get_settings
from certpath.exceptions import InvalidTransitionError, PersistenceError
from certpath.kernel.events.event_store import EventStore
from certpath.kernel.events.event_types import CertificateIssuedEvent, CertificateRevokedEvent
from certpath.kernel.models.assessment import Assessment, AssessmentStatus
from certpath.kernel.models.base import utcnow
from certpath.kernel.models.certificate import Certificate, CertificateStatus
from certpath.kernel.models.event_log import EventType
from certpath.kernel.stores.certificate_store import CertificateStore
from certpath.kernel.stores.question_store import QuestionPool
from certpath.kernel.stores.user_store import UserProgressionStore
from certpath.logging_config import get_logger

logger = get_logger(__name__)

_BASE36 = string.digits + string.ascii_uppercase
RANDOM_SUFFIX_LENGTH = 5


def to_base36(value: int) -> str:
    """Upper-case base-36 rendering of a non-negative integer."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


class CertificateIssuer:
    """
    Issues and revokes certificates.

    Issuance is idempotent on the source assessment: the insert skips on a
    unique conflict, and a conflict on assessment_id returns the certificate
    that is already there.
    """

    def __init__(
        self,
        session: AsyncSession,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.rng = rng or random.SystemRandom()
        self.clock = clock or utcnow
        self.settings = settings or get_settings()
        self.certificates = CertificateStore(session)
        self.questions = QuestionPool(session)
        self.users = UserProgressionStore(session)
        self.event_store = EventStore(session)

    def generate_certificate_number(self, level: str, now: Optional[datetime] = None) -> str:
        """PREFIX-LEVEL-<base36 ms timestamp>-<5 random base36 chars>, upper case."""
        now = now or self.clock()
        millis = int(now.timestamp() * 1000)
        suffix = "".join(self.rng.choice(_BASE36) for _ in range(RANDOM_SUFFIX_LENGTH))
        return f"{self.settings.certificate_prefix}-{level}-{to_base36(millis)}-{suffix}".upper()

    async def _competencies(self, assessment: Assessment) -> List[str]:
        questions = await self.questions.get_many([uuid.UUID(qid) for qid in assessment.question_ids])
        return sorted({q.competency for q in questions.values()})

    async def issue_if_earned(self, assessment: Assessment) -> Optional[Certificate]:
        """
        Mint the certificate for a completed assessment with a certificate level.

        Returns:
            The certificate (new or previously issued), or None when the
            assessment does not earn one
        """
        if assessment.status != AssessmentStatus.COMPLETED.value or assessment.certificate_level is None:
            return None

        existing = await self.certificates.find_by_assessment_id(assessment.id)
        if existing is not None:
            return existing

        now = self.clock()
        valid_until = None
        if self.settings.certificate_validity_days:
            valid_until = now + timedelta(days=self.settings.certificate_validity_days)
        competencies = await self._competencies(assessment)

        for attempt in range(1, self.settings.certificate_number_attempts + 1):
            number = self.generate_certificate_number(assessment.certificate_level, now)
            certificate = await self.certificates.create(
                {
                    "certificate_number": number,
                    "user_id": assessment.user_id,
                    "assessment_id": assessment.id,
                    "level": assessment.certificate_level,
                    "step": assessment.step,
                    "score": assessment.percentage,
                    "competencies": competencies,
                    "issued_at": now,
                    "valid_until": valid_until,
                    "status": CertificateStatus.ACTIVE.value,
                }
            )
            if certificate is not None:
                await self._after_issue(certificate)
                return certificate

            existing = await self.certificates.find_by_assessment_id(assessment.id)
            if existing is not None:
                return existing
            logger.warning(
                "Certificate number collision, retrying",
                extra={"certificate_number": number, "attempt": attempt},
            )

        raise PersistenceError(
            f"Could not allocate a unique certificate number after "
            f"{self.settings.certificate_number_attempts} attempts"
        )

    async def _after_issue(self, certificate: Certificate) -> None:
        await self.users.link_certificate(certificate.assessment_id, certificate.id)
        await self.event_store.log_from_model(
            event_type=EventType.CERTIFICATE_ISSUED,
            entity_type="certificate",
            entity_id=certificate.id,
            user_id=certificate.user_id,
            payload_model=CertificateIssuedEvent(
                certificate_number=certificate.certificate_number,
                level=certificate.level,
                assessment_id=certificate.assessment_id,
                step=certificate.step,
                score=certificate.score,
            ),
        )
        logger.info(
            "Certificate issued",
            extra={"certificate_number": certificate.certificate_number, "level": certificate.level},
        )

    async def revoke(self, certificate_id: uuid.UUID, reason: Optional[str] = None) -> Certificate:
        """active -> revoked. Revoking twice is an invalid transition."""
        certificate = await self.certificates.get(certificate_id)
        if certificate.status != CertificateStatus.ACTIVE.value:
            raise InvalidTransitionError(
                certificate.id,
                certificate.status,
                "revoke",
                "Certificate already revoked",
            )

        now = self.clock()
        certificate.status = CertificateStatus.REVOKED.value
        certificate.revoked_at = now
        certificate.revoked_reason = reason
        certificate.updated_at = now
        await self.session.flush()

        await self.event_store.log_from_model(
            event_type=EventType.CERTIFICATE_REVOKED,
            entity_type="certificate",
            entity_id=certificate.id,
            user_id=certificate.user_id,
            payload_model=CertificateRevokedEvent(
                certificate_number=certificate.certificate_number,
                level=certificate.level,
                reason=reason,
            ),
        )
        logger.info("Certificate revoked", extra={"certificate_number": certificate.certificate_number})
        return certificate

    async def list_for_user(self, user_id: uuid.UUID) -> List[Certificate]:
        return await self.certificates.list_for_user(user_id)

    async def find_by_number(self, certificate_number: str) -> Optional[Certificate]:
        return await self.certificates.find_by_number(certificate_number)

    async def find_by_assessment_id(self, assessment_id: uuid.UUID) -> Optional[Certificate]:
        return await self.certificates.find_by_assessment_id(assessment_id)
