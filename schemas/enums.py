"""
파이프라인 공통 Enum 정의
"""

from enum import Enum
from typing import Dict, FrozenSet


class SessionStatus(str, Enum):
    """세션 상태 (전진만 가능)"""
    CREATED = "created"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[SessionStatus] = frozenset({
    SessionStatus.COMPLETED,
    SessionStatus.FAILED,
    SessionStatus.EXPIRED,
})

# 허용된 상태 전이 (역방향 전이 없음)
ALLOWED_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.CREATED: frozenset({
        SessionStatus.PROCESSING,
        SessionStatus.FAILED,
        SessionStatus.EXPIRED,
    }),
    SessionStatus.PROCESSING: frozenset({
        SessionStatus.COMPLETED,
        SessionStatus.FAILED,
        SessionStatus.EXPIRED,
    }),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.FAILED: frozenset(),
    SessionStatus.EXPIRED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """current → target 전이 허용 여부"""
    return target in ALLOWED_TRANSITIONS[current]


class DocumentType(str, Enum):
    """생성 문서 유형"""
    CV = "CV"
    COVER_LETTER = "CoverLetter"


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"


class EmploymentType(str, Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"
    TEMPORARY = "temporary"
    UNKNOWN = "unknown"


class ExperienceLevel(str, Enum):
    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"
    LEAD = "lead"
    EXECUTIVE = "executive"
    UNKNOWN = "unknown"


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class SkillCategory(str, Enum):
    TECHNICAL = "technical"
    SOFT = "soft"
    LANGUAGE = "language"
    TOOL = "tool"
    OTHER = "other"


class StageName(str, Enum):
    """파이프라인 스테이지 이름 (실행 순서대로)"""
    PARSE = "Parse"
    EXTRACT_JOB = "ExtractJob"
    MATCH = "Match"
    GENERATE_CV = "GenerateDocument(CV)"
    GENERATE_COVER_LETTER = "GenerateDocument(CoverLetter)"
    REVIEW = "Review"
    FORMAT_STORE = "Format&Store"


STAGE_ORDER = tuple(StageName)
