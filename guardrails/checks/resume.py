"""
이력서 가드레일

- ResumeFileGuardrail: Parse 입력 (업로드 파일 메타데이터) 검사
- ResumeContentGuardrail: Parse 출력 (추출된 이력서 텍스트) 검사
"""

import re
import logging
from typing import Any

from schemas.pipeline_types import PipelineRequest, ParsedCandidate
from ..base import GateDirection, GuardrailCheck, GuardrailPolicy, GuardrailVerdict
from ..text_utils import matched_patterns

logger = logging.getLogger(__name__)


ALLOWED_MIME_TYPES = (
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
)

EXECUTABLE_NAME_PATTERNS = [
    r"\.(exe|bat|cmd|scr|pif|com|js|vbs|sh|msi|jar)$",
    r"\.(pdf|docx?)\.[a-z0-9]+$",  # 이중 확장자
]


class ResumeFileGuardrail(GuardrailCheck):
    """업로드 파일 크기/형식/파일명 검사"""

    name = "ResumeFileGuardrail"
    priority = 2
    policy = GuardrailPolicy.BLOCK

    def __init__(self, max_file_size_bytes: int = 10 * 1024 * 1024):
        self.max_file_size_bytes = max_file_size_bytes

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        if not isinstance(payload, PipelineRequest):
            raise TypeError(f"{self.name} expects PipelineRequest, got {type(payload).__name__}")

        if payload.resume_size == 0:
            return self.trip(
                "EmptyContent",
                "CV file is empty",
                recommendations=["Please upload a CV file that contains text"],
            )

        if payload.resume_size > self.max_file_size_bytes:
            return self.trip(
                "FileTooLarge",
                f"CV file size must be less than {self.max_file_size_bytes // (1024 * 1024)}MB",
                details={"file_size": payload.resume_size, "max_size": self.max_file_size_bytes},
                recommendations=[
                    "Please compress the CV file",
                    "Remove unnecessary images or formatting",
                ],
            )

        mime_type = (payload.resume_mime_type or "").split(";")[0].strip().lower()
        if mime_type not in ALLOWED_MIME_TYPES:
            return self.trip(
                "InvalidFileType",
                "Only PDF and Word documents are supported",
                details={"content_type": payload.resume_mime_type, "allowed_types": list(ALLOWED_MIME_TYPES)},
                recommendations=["Please convert your CV to PDF or Word format"],
            )

        suspicious = matched_patterns(EXECUTABLE_NAME_PATTERNS, payload.resume_filename or "")
        if suspicious:
            return self.trip(
                "SuspiciousFileName",
                "Suspicious file name detected",
                details={"file_name": payload.resume_filename, "suspicious_pattern": suspicious[0]},
                recommendations=["Please use a standard CV file name"],
            )

        return self.passed(file_size=payload.resume_size)


SUSPICIOUS_RESUME_PATTERNS = [
    r"\b(password|passwd|login credentials|api[_ ]key|secret key)\b\s*[:=]",
    r"\b(bank account|routing number|cvv)\b",
    r"\b(phishing|scam|fraud)\b",
    r"\b(send bitcoin|crypto wallet address)\b",
]

# 이력서로 보기 위한 지표 그룹
RESUME_INDICATORS = [
    r"\b(experience|employment|work history|career)\b",
    r"\b(education|university|college|degree|bachelor|master)\b",
    r"\b(skills|technologies|proficient|competenc(y|ies))\b",
    r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
]


class ResumeContentGuardrail(GuardrailCheck):
    """추출된 이력서 텍스트 검사"""

    name = "ResumeContentGuardrail"
    priority = 2
    policy = GuardrailPolicy.BLOCK
    violation_policies = {
        "LowQualityContent": GuardrailPolicy.WARN,
    }

    MIN_INDICATORS = 2

    def __init__(self, min_text_length: int = 100):
        self.min_text_length = min_text_length

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        if not isinstance(payload, ParsedCandidate):
            raise TypeError(f"{self.name} expects ParsedCandidate, got {type(payload).__name__}")

        text = payload.raw_text.strip()
        if not text:
            return self.trip(
                "EmptyContent",
                "CV content is empty",
                recommendations=["Ensure the CV contains readable text, not scanned images"],
            )

        if len(text) < self.min_text_length:
            return self.trip(
                "ContentTooShort",
                "CV content appears to be too short",
                details={"content_length": len(text), "min_length": self.min_text_length},
                recommendations=["Please provide a more detailed CV"],
            )

        suspicious = matched_patterns(SUSPICIOUS_RESUME_PATTERNS, text)
        if suspicious:
            return self.trip(
                "SuspiciousContent",
                f"Suspicious content detected: {len(suspicious)} pattern(s)",
                details={"violations": suspicious, "violation_count": len(suspicious)},
                recommendations=["Please remove sensitive information from your CV"],
            )

        indicators = sum(1 for p in RESUME_INDICATORS if re.search(p, text, re.IGNORECASE))
        if indicators < self.MIN_INDICATORS:
            return self.trip(
                "LowQualityContent",
                "CV content may be incomplete",
                details={"indicator_count": indicators, "content_length": len(text)},
                recommendations=["Include experience, education and skills sections"],
            )

        return self.passed(content_length=len(text), indicator_count=indicators)
