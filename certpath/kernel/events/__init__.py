"""
Event sourcing infrastructure.

Provides append-only audit logging with immutable events.
"""

from certpath.kernel.events.event_store import EventStore
from certpath.kernel.events.event_types import (
    BaseEvent,
    AssessmentEvent,
    AssessmentCreatedEvent,
    AssessmentCompletedEvent,
    RetakeLockedEvent,
    CertificateEvent,
    CertificateIssuedEvent,
    CertificateRevokedEvent,
)

__all__ = [
    "EventStore",
    "BaseEvent",
    "AssessmentEvent",
    "AssessmentCreatedEvent",
    "AssessmentCompletedEvent",
    "RetakeLockedEvent",
    "CertificateEvent",
    "CertificateIssuedEvent",
    "CertificateRevokedEvent",
]
