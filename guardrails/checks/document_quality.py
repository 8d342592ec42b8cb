"""
Document Quality Guardrail - 생성 문서 품질/ATS 호환성

- 길이 범위 벗어남: DocumentLength (차단)
- 필수 섹션 누락, 과도한 공백: QualityIssues (경고)
- 키워드 밀도/섹션 헤더 부족 (CV만): ATSCompatibilityIssues (경고)
"""

import re
import logging
from typing import Any, Dict, List

from context.shared_context import ContextKey, NOT_FOUND
from schemas.enums import DocumentType
from schemas.pipeline_types import GeneratedText
from ..base import GateDirection, GuardrailCheck, GuardrailPolicy, GuardrailVerdict
from ..text_utils import term_pattern

logger = logging.getLogger(__name__)


# 문서 유형별 필수 섹션 (정규식 중 하나라도 있으면 충족)
REQUIRED_SECTIONS: Dict[DocumentType, Dict[str, str]] = {
    DocumentType.CV: {
        "Contact": r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}|\+?\d[\d\s().-]{7,}\d",
        "Experience": r"\b(experience|employment|work history)\b",
        "Education": r"\beducation\b",
        "Skills": r"\b(skills|technologies|competencies)\b",
    },
    DocumentType.COVER_LETTER: {
        "Salutation": r"^\s*(dear|hello|to whom it may concern)\b",
        "Closing": r"\b(sincerely|regards|best|respectfully|thank you)\b",
    },
}

HEADER_PATTERN = re.compile(r"^\s*(#{1,6}\s+\S.*|[A-Z][A-Z &/]{2,40}:?|[A-Z][A-Za-z &/]{2,40}:)\s*$")


class DocumentQualityGuardrail(GuardrailCheck):
    """생성 문서 품질 검사"""

    name = "DocumentQualityGuardrail"
    priority = 3
    policy = GuardrailPolicy.BLOCK
    violation_policies = {
        "QualityIssues": GuardrailPolicy.WARN,
        "ATSCompatibilityIssues": GuardrailPolicy.WARN,
    }

    MIN_LENGTH = 200
    MAX_LENGTH = 10000
    MIN_KEYWORD_DENSITY = 0.02
    MIN_SECTION_HEADERS = 3

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        if not isinstance(payload, GeneratedText):
            raise TypeError(f"{self.name} expects GeneratedText, got {type(payload).__name__}")

        content = payload.content
        doc_type = payload.document_type.value

        if not self.MIN_LENGTH <= len(content) <= self.MAX_LENGTH:
            issue = "Document is too short" if len(content) < self.MIN_LENGTH else "Document is too long"
            return self.trip(
                "DocumentLength",
                issue,
                details={
                    "document_type": doc_type,
                    "content_length": len(content),
                    "min_length": self.MIN_LENGTH,
                    "max_length": self.MAX_LENGTH,
                },
            )

        issues = self.quality_issues(payload)
        ats_issues: List[str] = []
        keyword_density = None
        if payload.document_type is DocumentType.CV:
            ats_issues, keyword_density = self.ats_issues(content, context)

        if issues:
            return self.trip(
                "QualityIssues",
                f"Document quality issues detected: {'; '.join(issues + ats_issues)}",
                details={"document_type": doc_type, "issues": issues, "ats_issues": ats_issues},
                recommendations=["Ensure all required sections are present"],
            )
        if ats_issues:
            return self.trip(
                "ATSCompatibilityIssues",
                f"ATS compatibility issues detected: {'; '.join(ats_issues)}",
                details={"document_type": doc_type, "issues": ats_issues, "keyword_density": keyword_density},
                recommendations=[
                    "Include relevant keywords from job description",
                    "Ensure proper section headers",
                ],
            )

        return self.passed(document_type=doc_type, keyword_density=keyword_density)

    def quality_issues(self, payload: GeneratedText) -> List[str]:
        content = payload.content
        issues = []
        for section, pattern in REQUIRED_SECTIONS.get(payload.document_type, {}).items():
            if not re.search(pattern, content, re.IGNORECASE | re.MULTILINE):
                issues.append(f"Missing required section: {section}")
        if re.search(r"[ \t]{5,}\S", content):
            issues.append("Excessive whitespace detected")
        return issues

    def ats_issues(self, content: str, context):
        issues = []
        density = None

        job = context.find(ContextKey.JOB)
        if job is not NOT_FOUND and job.required_skills:
            words = max(len(content.split()), 1)
            hits = sum(len(term_pattern(skill).findall(content)) for skill in job.required_skills if skill)
            density = round(hits / words, 4)
            if density < self.MIN_KEYWORD_DENSITY:
                issues.append("Low keyword density - may not pass ATS screening")

        headers = [line for line in content.splitlines() if HEADER_PATTERN.match(line)]
        if len(headers) < self.MIN_SECTION_HEADERS:
            issues.append("Insufficient section headers for ATS parsing")

        return issues, density
