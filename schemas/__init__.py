# Schemas Package

from .enums import (
    SessionStatus,
    DocumentType,
    DocumentStatus,
    EmploymentType,
    ExperienceLevel,
    SkillLevel,
    SkillCategory,
    TERMINAL_STATUSES,
    ALLOWED_TRANSITIONS,
    can_transition,
    StageName,
    STAGE_ORDER,
)

from .pipeline_types import (
    PipelineRequest,
    WorkExperience,
    Education,
    Skill,
    ParsedCandidate,
    CompanyInfo,
    ParsedJob,
    MatchResult,
    GeneratedText,
    DocumentReview,
    ReviewResult,
    GeneratedDocument,
    Session,
    SessionStatusView,
)

__all__ = [
    # Enums
    "SessionStatus",
    "DocumentType",
    "DocumentStatus",
    "EmploymentType",
    "ExperienceLevel",
    "SkillLevel",
    "SkillCategory",
    "TERMINAL_STATUSES",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "StageName",
    "STAGE_ORDER",
    # Pipeline types
    "PipelineRequest",
    "WorkExperience",
    "Education",
    "Skill",
    "ParsedCandidate",
    "CompanyInfo",
    "ParsedJob",
    "MatchResult",
    "GeneratedText",
    "DocumentReview",
    "ReviewResult",
    "GeneratedDocument",
    "Session",
    "SessionStatusView",
]
