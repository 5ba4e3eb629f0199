"""
Stable Kernel Layer

Foundational components the engines build on:
- Data models (users/progression, question pool, assessments, certificates)
- Stores (the only code that queries the database directly)
- Immutable Event Log (every state change logged in its transaction)
"""

from certpath.kernel.models import (
    Assessment,
    AssessmentStatus,
    Certificate,
    CertificateStatus,
    CompetencyLevel,
    EventLog,
    EventType,
    Question,
    User,
    UserRole,
)

__all__ = [
    "Assessment",
    "AssessmentStatus",
    "Certificate",
    "CertificateStatus",
    "CompetencyLevel",
    "EventLog",
    "EventType",
    "Question",
    "User",
    "UserRole",
]
