"""
Privacy Guardrail - 민감 식별번호 탐지

주민등록번호, SSN, 카드번호(Luhn 검증)를 탐지합니다.
파싱 결과에 대해서는 경고, 생성 문서에 대해서는 차단으로 등록합니다.
"""

import re
import logging
from typing import Any, Dict, List

from ..base import GateDirection, GuardrailCheck, GuardrailPolicy, GuardrailVerdict
from ..text_utils import payload_text

logger = logging.getLogger(__name__)


IDENTIFIER_PATTERNS: Dict[str, str] = {
    "resident_registration_number": r"\b\d{2}[0-1]\d[0-3]\d[-\s]?[1-4]\d{6}\b",
    "ssn": r"\b\d{3}-\d{2}-\d{4}\b",
}

CARD_CANDIDATE_PATTERN = r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{1,7}\b"


def luhn_valid(digits: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(digits)):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def find_identifiers(text: str) -> Dict[str, int]:
    """식별번호 종류별 탐지 개수 (값 자체는 반환하지 않음)"""
    found: Dict[str, int] = {}
    for kind, pattern in IDENTIFIER_PATTERNS.items():
        count = len(re.findall(pattern, text))
        if count:
            found[kind] = count

    cards = [
        m for m in re.findall(CARD_CANDIDATE_PATTERN, text)
        if 13 <= len(re.sub(r"\D", "", m)) <= 19 and luhn_valid(re.sub(r"\D", "", m))
    ]
    if cards:
        found["card_number"] = len(cards)
    return found


class PrivacyGuardrail(GuardrailCheck):
    """민감 식별번호 검사 (정책은 등록 시점에 지정)"""

    name = "PrivacyGuardrail"
    priority = 1

    def __init__(self, policy: GuardrailPolicy = GuardrailPolicy.BLOCK):
        self.policy = policy

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        found = find_identifiers(payload_text(payload))
        if found:
            kinds: List[str] = sorted(found)
            return self.trip(
                "SensitiveIdentifier",
                f"Sensitive identifiers detected: {', '.join(kinds)}",
                details={"identifiers": found},
                recommendations=["Remove national ID and payment card numbers"],
            )
        return self.passed()
