"""
Guardrail Checks

각 체크는 독립적으로 실행 가능하며 GuardrailVerdict 하나를 반환합니다.
"""

from .resume import ResumeFileGuardrail, ResumeContentGuardrail
from .job_posting import JobUrlGuardrail, JobContentGuardrail
from .truthfulness import TruthfulnessGuardrail
from .compliance import ComplianceGuardrail
from .privacy import PrivacyGuardrail
from .document_quality import DocumentQualityGuardrail
from .outcomes import MatchResultGuardrail, ReviewOutcomeGuardrail, DocumentSetGuardrail

__all__ = [
    "ResumeFileGuardrail",
    "ResumeContentGuardrail",
    "JobUrlGuardrail",
    "JobContentGuardrail",
    "TruthfulnessGuardrail",
    "ComplianceGuardrail",
    "PrivacyGuardrail",
    "DocumentQualityGuardrail",
    "MatchResultGuardrail",
    "ReviewOutcomeGuardrail",
    "DocumentSetGuardrail",
]
