"""
Compliance Guardrail - 차별/보호 속성 검사

명시적 차별 표현은 차단하고, 보호 속성(나이, 혼인 여부, 종교 등) 노출은
경고로 남깁니다. 단어 하나(예: "senior", "team")만으로 차단하지 않습니다.
"""

import logging
from typing import Any

from ..base import GateDirection, GuardrailCheck, GuardrailPolicy, GuardrailVerdict
from ..text_utils import payload_text, matched_terms

logger = logging.getLogger(__name__)


DISCRIMINATORY_PATTERNS = [
    r"\b(retarded|tranny|fag|dyke)\b",
    r"\b(only|must be|preferably)\s+(male|female|men|women|young|white|christian|muslim|native[- ]born)\b",
    r"\b(no|not)\s+(women|men|immigrants|foreigners|older workers)\b",
]

PROTECTED_ATTRIBUTE_PATTERNS = [
    r"\b\d{1,2}\s*(years?\s*old|years?\s*of\s*age)\b",
    r"\b(date of birth|born (in|on) \d{4})\b",
    r"\b(married|divorced|widowed|single (mother|father|parent))\b",
    r"\b(pregnan(t|cy)|maternity leave|paternity leave)\b",
    r"\b(my religion|religious affiliation|church member)\b",
    r"\b(republican|democrat) party\b",
    r"\b(nationality|ethnicity|race)\s*:",
]


class ComplianceGuardrail(GuardrailCheck):
    """생성 문서 컴플라이언스 검사"""

    name = "ComplianceGuardrail"
    priority = 1
    policy = GuardrailPolicy.BLOCK
    violation_policies = {
        "ProtectedAttributesViolation": GuardrailPolicy.WARN,
    }

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        text = payload_text(payload)
        if not text.strip():
            return self.trip("EmptyOutput", "No output content to validate")

        discriminatory = matched_terms(DISCRIMINATORY_PATTERNS, text)
        if discriminatory:
            return self.trip(
                "DiscriminationViolation",
                f"Discriminatory language detected: {', '.join(discriminatory)}",
                details={"violations": discriminatory, "violation_count": len(discriminatory)},
                recommendations=[
                    "Remove any references to protected characteristics",
                    "Focus on skills and qualifications only",
                ],
            )

        protected = matched_terms(PROTECTED_ATTRIBUTE_PATTERNS, text)
        if protected:
            return self.trip(
                "ProtectedAttributesViolation",
                f"Protected attributes disclosed: {', '.join(protected)}",
                details={"attributes": protected},
                recommendations=["Consider removing personal details unrelated to the role"],
            )

        return self.passed()
