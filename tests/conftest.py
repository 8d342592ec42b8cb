"""
Worker Test Configuration
"""
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

# Add worker directory to path for imports
worker_dir = Path(__file__).parent.parent
sys.path.insert(0, str(worker_dir))

import pytest

from config import Settings, StorageBackend
from schemas.enums import DocumentType
from schemas.pipeline_types import PipelineRequest
from services.blob_store import InMemoryBlobStore
from services.interfaces import (
    DocumentRenderer,
    DocumentTextExtractor,
    JobContentFetcher,
    TextGenerationProvider,
)
from services.metrics_service import MetricsCollector
from services.session_store import InMemorySessionStore


SAMPLE_RESUME_TEXT = """Jane Doe
jane.doe@example.com | +1 555 010 2030 | Seattle, WA

SUMMARY
Backend engineer with six years of experience building data services.

EXPERIENCE
Acme Analytics, Senior Software Engineer (2020 - Present)
- Built Python and FastAPI services processing 2M events per day
- Migrated reporting jobs to PostgreSQL and Docker

Globex, Software Engineer (2017 - 2020)
- Developed Django applications and REST APIs

EDUCATION
University of Washington, B.S. Computer Science (2017)

SKILLS
Python, FastAPI, Django, PostgreSQL, Docker, AWS
"""

SAMPLE_JOB_TEXT = """Senior Backend Engineer - Initech
Initech is a company building analytics tools for retail teams.

Responsibilities
- Design and operate Python services on AWS

Requirements
- 5+ years of experience with Python and PostgreSQL
- Experience with Docker

Compensation and benefits: competitive salary and remote-friendly team.
"""

SAMPLE_CV = """JANE DOE
jane.doe@example.com | +1 555 010 2030 | Seattle, WA

SUMMARY
Backend engineer with six years of experience building Python data services.

EXPERIENCE
Acme Analytics, Senior Software Engineer (2020 - Present)
- Built Python and FastAPI services processing 2M events per day
- Migrated reporting jobs to PostgreSQL and Docker

Globex, Software Engineer (2017 - 2020)
- Developed Django applications and REST APIs

EDUCATION
University of Washington, B.S. Computer Science (2017)

SKILLS
Python, FastAPI, Django, PostgreSQL, Docker, AWS
"""

SAMPLE_COVER_LETTER = """Dear Hiring Manager,

I am excited to apply for the Senior Backend Engineer role at Initech. Over the past six years
I have built Python and FastAPI services at Acme Analytics and moved reporting workloads to
PostgreSQL and Docker.

I would welcome the chance to bring this experience to your analytics team.

Sincerely,
Jane Doe
"""

SAMPLE_JOB_URL = "https://boards.greenhouse.io/initech/jobs/12345"

CANDIDATE_DATA = {
    "first_name": "Jane",
    "last_name": "Doe",
    "email": "jane.doe@example.com",
    "phone": "+1 555 010 2030",
    "location": "Seattle, WA",
    "summary": "Backend engineer with six years of experience building data services.",
    "work_experiences": [
        {
            "company": "Acme Analytics",
            "title": "Senior Software Engineer",
            "start": "2020",
            "end": "Present",
            "achievements": ["Built Python and FastAPI services processing 2M events per day"],
        },
        {"company": "Globex", "title": "Software Engineer", "start": "2017", "end": "2020"},
    ],
    "education": [
        {"institution": "University of Washington", "degree": "B.S.", "field_of_study": "Computer Science"},
    ],
    "skills": ["Python", "FastAPI", "Django", "PostgreSQL", "Docker", "AWS"],
}

JOB_DATA = {
    "title": "Senior Backend Engineer",
    "company": "Initech",
    "location": "Remote",
    "employment_type": "full_time",
    "experience_level": "senior",
    "description": "Design and operate Python services on AWS.",
    "requirements": ["5+ years of experience with Python and PostgreSQL", "Experience with Docker"],
    "responsibilities": ["Design and operate Python services on AWS"],
    "required_skills": ["Python", "PostgreSQL", "Docker", "AWS"],
    "company_info": {"mission": "Analytics tools for retail teams"},
}

MATCH_DATA = {
    "match_score": 82,
    "matching_skills": ["Python", "PostgreSQL", "Docker", "AWS"],
    "skill_gaps": ["Kubernetes"],
    "strengths": ["Backend services"],
    "recommendations": ["Highlight data pipeline work"],
    "skill_scores": {"Python": 95, "PostgreSQL": 80},
}

CV_REVIEW_DATA = {
    "is_truthful": True,
    "quality_score": 85,
    "issues": [],
    "fabricated_content": [],
    "recommendations": [],
    "requires_human_review": False,
}

COVER_LETTER_REVIEW_DATA = {
    "is_truthful": True,
    "quality_score": 80,
    "issues": [],
    "fabricated_content": [],
    "recommendations": [],
    "requires_human_review": False,
}


# ─────────────────────────────────────────────────
# Fake collaborators
# ─────────────────────────────────────────────────

# 프롬프트 첫 문장 → 호출 종류
PROMPT_KINDS = [
    ("Extract the candidate profile", "parse"),
    ("Extract the structured job posting", "job"),
    ("Compare the candidate", "match"),
    ("Review the generated CV", "review_cv"),
    ("Review the generated cover letter", "review_cover_letter"),
    ("Create a tailored CV", "cv"),
    ("Write a cover letter", "cover_letter"),
]


def prompt_kind(prompt: str) -> str:
    for prefix, kind in PROMPT_KINDS:
        if prompt.startswith(prefix):
            return kind
    raise AssertionError(f"Unexpected prompt: {prompt[:60]!r}")


class FakeTextProvider(TextGenerationProvider):
    """
    프롬프트 종류별 고정 응답

    - responses[kind]: 응답 값 (Exception이면 raise)
    - hooks[kind]: 응답 전에 await되는 콜백
    """

    def __init__(self):
        self.responses: Dict[str, Any] = {
            "parse": dict(CANDIDATE_DATA),
            "job": dict(JOB_DATA),
            "match": dict(MATCH_DATA),
            "review_cv": dict(CV_REVIEW_DATA),
            "review_cover_letter": dict(COVER_LETTER_REVIEW_DATA),
            "cv": SAMPLE_CV,
            "cover_letter": SAMPLE_COVER_LETTER,
        }
        self.hooks: Dict[str, Callable[[], Awaitable[None]]] = {}
        self.calls: List[str] = []

    async def _respond(self, prompt: str) -> Any:
        kind = prompt_kind(prompt)
        self.calls.append(kind)
        if kind in self.hooks:
            await self.hooks[kind]()
        response = self.responses[kind]
        if isinstance(response, Exception):
            raise response
        return response

    async def analyze(self, prompt: str) -> Dict[str, Any]:
        return await self._respond(prompt)

    async def generate(self, prompt: str) -> str:
        return await self._respond(prompt)


class FakeExtractor(DocumentTextExtractor):
    def __init__(self, text: str = SAMPLE_RESUME_TEXT):
        self.text = text
        self.calls = 0

    async def extract_text(self, file_bytes: bytes, mime_type: str) -> str:
        self.calls += 1
        return self.text


class FakeFetcher(JobContentFetcher):
    def __init__(self, text: str = SAMPLE_JOB_TEXT):
        self.text = text
        self.urls: List[str] = []

    async def fetch(self, url: str) -> str:
        self.urls.append(url)
        return self.text


class FakeRenderer(DocumentRenderer):
    content_type = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    file_extension = ".docx"

    async def render(self, text: str, document_type: DocumentType) -> bytes:
        return f"{document_type.value}\n{text}".encode("utf-8")


@dataclass
class PipelineHarness:
    """조립된 오케스트레이터 + 주입된 협력자"""
    orchestrator: Any
    session_store: InMemorySessionStore
    blob_store: InMemoryBlobStore
    provider: FakeTextProvider
    extractor: FakeExtractor
    fetcher: FakeFetcher
    metrics: MetricsCollector


# ─────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────

@pytest.fixture
def test_settings():
    """.env를 읽지 않는 테스트 설정"""
    return Settings(
        _env_file=None,
        ENV="test",
        STORAGE_BACKEND=StorageBackend.MEMORY,
        OPENAI_API_KEY="",
        SENTRY_DSN="",
        STAGE_TIMEOUT_SECONDS=5.0,
    )


@pytest.fixture
def sample_resume_text():
    """샘플 이력서 텍스트"""
    return SAMPLE_RESUME_TEXT


@pytest.fixture
def sample_job_text():
    """샘플 채용공고 텍스트"""
    return SAMPLE_JOB_TEXT


@pytest.fixture
def pipeline_request():
    return make_request()


def make_request(
    job_url: str = SAMPLE_JOB_URL,
    resume_bytes: bytes = b"%PDF-1.7 fake resume",
    filename: str = "jane_doe_resume.pdf",
    mime_type: str = "application/pdf",
    company_name: Optional[str] = None,
) -> PipelineRequest:
    return PipelineRequest(
        resume_bytes=resume_bytes,
        resume_filename=filename,
        resume_mime_type=mime_type,
        job_url=job_url,
        company_name=company_name,
    )


@pytest.fixture
def fake_provider():
    return FakeTextProvider()


@pytest.fixture
def harness(test_settings, fake_provider):
    """Fake 협력자로 조립한 오케스트레이터"""
    from orchestrator import build_pipeline_orchestrator

    session_store = InMemorySessionStore(ttl_hours=test_settings.SESSION_TTL_HOURS)
    blob_store = InMemoryBlobStore()
    extractor = FakeExtractor()
    fetcher = FakeFetcher()
    metrics = MetricsCollector()

    orchestrator = build_pipeline_orchestrator(
        test_settings,
        session_store=session_store,
        blob_store=blob_store,
        extractor=extractor,
        provider=fake_provider,
        fetcher=fetcher,
        renderer=FakeRenderer(),
        metrics=metrics,
    )
    return PipelineHarness(
        orchestrator=orchestrator,
        session_store=session_store,
        blob_store=blob_store,
        provider=fake_provider,
        extractor=extractor,
        fetcher=fetcher,
        metrics=metrics,
    )
