"""
Stores: the only code that queries the database directly.
"""

from certpath.kernel.stores.assessment_store import AssessmentStore
from certpath.kernel.stores.certificate_store import CertificateStore
from certpath.kernel.stores.question_store import QuestionPool
from certpath.kernel.stores.user_store import HistoryItem, UserProgression, UserProgressionStore

__all__ = [
    "AssessmentStore",
    "CertificateStore",
    "QuestionPool",
    "HistoryItem",
    "UserProgression",
    "UserProgressionStore",
]
