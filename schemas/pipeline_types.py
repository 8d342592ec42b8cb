"""
파이프라인 데이터 타입 정의

스테이지 간에 SharedContext로 전달되는 타입들과
세션/문서 레코드를 정의합니다.

- PipelineRequest: 파이프라인 입력 (이력서 파일 + 채용공고 URL)
- ParsedCandidate: Parse 스테이지 출력
- ParsedJob: ExtractJob 스테이지 출력
- MatchResult: Match 스테이지 출력
- GeneratedText: GenerateDocument 스테이지 출력
- ReviewResult: Review 스테이지 출력
- GeneratedDocument: Format&Store 스테이지 출력
- Session / SessionStatusView: 외부에 노출되는 실행 기록
"""

import uuid
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Type, TypeVar

from .enums import (
    SessionStatus,
    DocumentType,
    DocumentStatus,
    EmploymentType,
    ExperienceLevel,
    SkillLevel,
    SkillCategory,
)

E = TypeVar("E", bound=Enum)


# ============================================================================
# LLM 응답 정규화 헬퍼
# ============================================================================

def _str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _str_list(value: Any) -> List[str]:
    """문자열 또는 리스트를 문자열 리스트로 정규화"""
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        return [_str(v) for v in value if _str(v)]
    return [_str(value)]


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _enum(enum_cls: Type[E], value: Any, default: E) -> E:
    if isinstance(value, enum_cls):
        return value
    normalized = _str(value).lower().replace("-", "_").replace(" ", "_")
    for member in enum_cls:
        if member.value.lower() == normalized or member.name.lower() == normalized:
            return member
    return default


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """timezone 없는 값은 UTC로 간주"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return ensure_utc(value)


# ============================================================================
# 입력
# ============================================================================

@dataclass
class PipelineRequest:
    """파이프라인 입력"""
    resume_bytes: bytes
    resume_filename: str
    resume_mime_type: str
    job_url: str
    company_name: Optional[str] = None

    @property
    def resume_size(self) -> int:
        return len(self.resume_bytes)

    @property
    def candidate_ref(self) -> str:
        return self.resume_filename

    @property
    def job_ref(self) -> str:
        return self.job_url

    def to_dict(self) -> Dict[str, Any]:
        # 파일 바이트는 로그/응답에 포함하지 않음
        return {
            "resume_filename": self.resume_filename,
            "resume_mime_type": self.resume_mime_type,
            "resume_size": self.resume_size,
            "job_url": self.job_url,
            "company_name": self.company_name,
        }


# ============================================================================
# Parse 스테이지
# ============================================================================

@dataclass
class WorkExperience:
    company: str = ""
    title: str = ""
    start: str = ""
    end: str = ""
    description: str = ""
    achievements: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkExperience":
        return cls(
            company=_str(data.get("company")),
            title=_str(data.get("title") or data.get("position")),
            start=_str(data.get("start") or data.get("start_date")),
            end=_str(data.get("end") or data.get("end_date")),
            description=_str(data.get("description")),
            achievements=_str_list(data.get("achievements")),
        )


@dataclass
class Education:
    institution: str = ""
    degree: str = ""
    field_of_study: str = ""
    graduation_year: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Education":
        return cls(
            institution=_str(data.get("institution") or data.get("school")),
            degree=_str(data.get("degree")),
            field_of_study=_str(data.get("field_of_study") or data.get("major")),
            graduation_year=_str(data.get("graduation_year") or data.get("end")),
        )


@dataclass
class Skill:
    name: str
    level: SkillLevel = SkillLevel.INTERMEDIATE
    category: SkillCategory = SkillCategory.TECHNICAL
    years: Optional[float] = None

    @classmethod
    def from_value(cls, value: Any) -> "Skill":
        if isinstance(value, str):
            return cls(name=value.strip())
        years = value.get("years")
        return cls(
            name=_str(value.get("name")),
            level=_enum(SkillLevel, value.get("level"), SkillLevel.INTERMEDIATE),
            category=_enum(SkillCategory, value.get("category"), SkillCategory.TECHNICAL),
            years=_float(years) if years is not None else None,
        )


@dataclass
class ParsedCandidate:
    """
    파싱된 지원자 프로필

    raw_text는 추출된 이력서 원문이며 진실성 검증의 기준이 됩니다.
    """
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    summary: str = ""
    work_experiences: List[WorkExperience] = field(default_factory=list)
    education: List[Education] = field(default_factory=list)
    skills: List[Skill] = field(default_factory=list)
    certifications: List[str] = field(default_factory=list)
    projects: List[str] = field(default_factory=list)
    raw_text: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def skill_names(self) -> List[str]:
        return [s.name for s in self.skills if s.name]

    @classmethod
    def from_dict(cls, data: Dict[str, Any], raw_text: str = "") -> "ParsedCandidate":
        return cls(
            first_name=_str(data.get("first_name")),
            last_name=_str(data.get("last_name")),
            email=_str(data.get("email")),
            phone=_str(data.get("phone")),
            location=_str(data.get("location")),
            summary=_str(data.get("summary")),
            work_experiences=[
                WorkExperience.from_dict(w) for w in data.get("work_experiences") or []
                if isinstance(w, dict)
            ],
            education=[
                Education.from_dict(e) for e in data.get("education") or []
                if isinstance(e, dict)
            ],
            skills=[
                s for s in (Skill.from_value(v) for v in data.get("skills") or []
                            if isinstance(v, (str, dict)))
                if s.name
            ],
            certifications=_str_list(data.get("certifications")),
            projects=_str_list(data.get("projects")),
            raw_text=raw_text,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "location": self.location,
            "summary": self.summary,
            "work_experiences": [vars(w) for w in self.work_experiences],
            "education": [vars(e) for e in self.education],
            "skills": [
                {"name": s.name, "level": s.level.value, "category": s.category.value, "years": s.years}
                for s in self.skills
            ],
            "certifications": self.certifications,
            "projects": self.projects,
            "raw_text_length": len(self.raw_text),
        }


# ============================================================================
# ExtractJob 스테이지
# ============================================================================

@dataclass
class CompanyInfo:
    name: str = ""
    mission: str = ""
    description: str = ""
    industry: str = ""
    size: str = ""
    website: str = ""
    values: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompanyInfo":
        return cls(
            name=_str(data.get("name")),
            mission=_str(data.get("mission")),
            description=_str(data.get("description")),
            industry=_str(data.get("industry")),
            size=_str(data.get("size")),
            website=_str(data.get("website")),
            values=_str_list(data.get("values")),
        )


@dataclass
class ParsedJob:
    """파싱된 채용공고"""
    title: str = ""
    company: str = ""
    location: str = ""
    employment_type: EmploymentType = EmploymentType.UNKNOWN
    experience_level: ExperienceLevel = ExperienceLevel.UNKNOWN
    description: str = ""
    requirements: List[str] = field(default_factory=list)
    responsibilities: List[str] = field(default_factory=list)
    required_skills: List[str] = field(default_factory=list)
    required_qualifications: List[str] = field(default_factory=list)
    company_info: CompanyInfo = field(default_factory=CompanyInfo)
    source_url: str = ""
    raw_text: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source_url: str = "", raw_text: str = "") -> "ParsedJob":
        company_info = data.get("company_info")
        return cls(
            title=_str(data.get("title") or data.get("job_title")),
            company=_str(data.get("company")),
            location=_str(data.get("location")),
            employment_type=_enum(EmploymentType, data.get("employment_type"), EmploymentType.UNKNOWN),
            experience_level=_enum(ExperienceLevel, data.get("experience_level"), ExperienceLevel.UNKNOWN),
            description=_str(data.get("description")),
            requirements=_str_list(data.get("requirements")),
            responsibilities=_str_list(data.get("responsibilities")),
            required_skills=_str_list(data.get("required_skills")),
            required_qualifications=_str_list(data.get("required_qualifications")),
            company_info=CompanyInfo.from_dict(company_info) if isinstance(company_info, dict) else CompanyInfo(),
            source_url=source_url,
            raw_text=raw_text,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "employment_type": self.employment_type.value,
            "experience_level": self.experience_level.value,
            "description": self.description,
            "requirements": self.requirements,
            "responsibilities": self.responsibilities,
            "required_skills": self.required_skills,
            "required_qualifications": self.required_qualifications,
            "company_info": vars(self.company_info),
            "source_url": self.source_url,
        }


# ============================================================================
# Match 스테이지
# ============================================================================

@dataclass
class MatchResult:
    """지원자-공고 매칭 결과 (점수 0-100)"""
    match_score: float = 0.0
    matching_skills: List[str] = field(default_factory=list)
    skill_gaps: List[str] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    skill_scores: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchResult":
        raw_scores = data.get("skill_scores") or {}
        return cls(
            match_score=_float(data.get("match_score")),
            matching_skills=_str_list(data.get("matching_skills")),
            skill_gaps=_str_list(data.get("skill_gaps")),
            strengths=_str_list(data.get("strengths")),
            recommendations=_str_list(data.get("recommendations")),
            skill_scores={
                _str(k): _float(v) for k, v in raw_scores.items()
            } if isinstance(raw_scores, dict) else {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match_score": self.match_score,
            "matching_skills": self.matching_skills,
            "skill_gaps": self.skill_gaps,
            "strengths": self.strengths,
            "recommendations": self.recommendations,
            "skill_scores": self.skill_scores,
        }


# ============================================================================
# GenerateDocument 스테이지
# ============================================================================

@dataclass
class GeneratedText:
    """생성된 문서 본문"""
    document_type: DocumentType
    content: str

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_type": self.document_type.value,
            "word_count": self.word_count,
            "length": len(self.content),
        }


# ============================================================================
# Review 스테이지
# ============================================================================

@dataclass
class DocumentReview:
    """단일 문서 리뷰"""
    document_type: DocumentType
    is_truthful: bool = True
    quality_score: float = 0.0
    issues: List[str] = field(default_factory=list)
    fabricated_content: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    requires_human_review: bool = False

    @classmethod
    def from_dict(cls, document_type: DocumentType, data: Dict[str, Any]) -> "DocumentReview":
        return cls(
            document_type=document_type,
            is_truthful=bool(data.get("is_truthful", True)),
            quality_score=_float(data.get("quality_score")),
            issues=_str_list(data.get("issues")),
            fabricated_content=_str_list(data.get("fabricated_content")),
            recommendations=_str_list(data.get("recommendations")),
            requires_human_review=bool(data.get("requires_human_review", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_type": self.document_type.value,
            "is_truthful": self.is_truthful,
            "quality_score": self.quality_score,
            "issues": self.issues,
            "fabricated_content": self.fabricated_content,
            "recommendations": self.recommendations,
            "requires_human_review": self.requires_human_review,
        }


@dataclass
class ReviewResult:
    """CV + 커버레터 리뷰 결과"""
    cv: DocumentReview
    cover_letter: DocumentReview

    @property
    def reviews(self) -> List[DocumentReview]:
        return [self.cv, self.cover_letter]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cv": self.cv.to_dict(),
            "cover_letter": self.cover_letter.to_dict(),
        }


# ============================================================================
# Format&Store 스테이지
# ============================================================================

@dataclass
class GeneratedDocument:
    """저장된 생성 문서 레코드"""
    file_name: str
    document_type: DocumentType
    content_type: str
    file_size_bytes: int
    blob_reference: str
    session_id: str
    status: DocumentStatus = DocumentStatus.COMPLETED
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "document_type": self.document_type.value,
            "content_type": self.content_type,
            "file_size_bytes": self.file_size_bytes,
            "blob_reference": self.blob_reference,
            "session_id": self.session_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneratedDocument":
        return cls(
            id=data["id"],
            file_name=data["file_name"],
            document_type=DocumentType(data["document_type"]),
            content_type=data["content_type"],
            file_size_bytes=int(data["file_size_bytes"]),
            blob_reference=data["blob_reference"],
            session_id=data["session_id"],
            status=DocumentStatus(data.get("status", DocumentStatus.COMPLETED.value)),
            created_at=_parse_datetime(data.get("created_at")) or utc_now(),
        )


# ============================================================================
# 세션
# ============================================================================

@dataclass
class Session:
    """
    파이프라인 실행 세션

    상태/로그는 오케스트레이터만 변경합니다 (single writer).
    processing_log는 append-only.
    """
    id: str
    token: str
    candidate_ref: str
    job_ref: str
    created_at: datetime
    expires_at: datetime
    status: SessionStatus = SessionStatus.CREATED
    processing_log: List[str] = field(default_factory=list)
    completed_at: Optional[datetime] = None
    documents: List[GeneratedDocument] = field(default_factory=list)

    def to_status_view(self) -> "SessionStatusView":
        return SessionStatusView(
            session_id=self.id,
            token=self.token,
            status=self.status,
            processing_log=tuple(self.processing_log),
            created_at=self.created_at,
            expires_at=self.expires_at,
            completed_at=self.completed_at,
            documents=tuple(self.documents),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "token": self.token,
            "candidate_ref": self.candidate_ref,
            "job_ref": self.job_ref,
            "status": self.status.value,
            "processing_log": list(self.processing_log),
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "documents": [d.to_dict() for d in self.documents],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=data["id"],
            token=data["token"],
            candidate_ref=data.get("candidate_ref") or "",
            job_ref=data.get("job_ref") or "",
            status=SessionStatus(data["status"]),
            processing_log=list(data.get("processing_log") or []),
            created_at=_parse_datetime(data["created_at"]),
            expires_at=_parse_datetime(data["expires_at"]),
            completed_at=_parse_datetime(data.get("completed_at")),
            documents=[GeneratedDocument.from_dict(d) for d in data.get("documents") or []],
        )


@dataclass(frozen=True)
class SessionStatusView:
    """getStatus 조회용 읽기 전용 스냅샷"""
    session_id: str
    token: str
    status: SessionStatus
    processing_log: tuple
    created_at: datetime
    expires_at: datetime
    completed_at: Optional[datetime] = None
    documents: tuple = ()

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def last_log_entry(self) -> Optional[str]:
        return self.processing_log[-1] if self.processing_log else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "token": self.token,
            "status": self.status.value,
            "processing_log": list(self.processing_log),
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "documents": [d.to_dict() for d in self.documents],
        }
