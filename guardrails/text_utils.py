"""
가드레일 공용 텍스트 헬퍼
"""

import re
from typing import Any, Iterable, List, Pattern

from schemas.pipeline_types import GeneratedText, ParsedCandidate, ParsedJob


def payload_text(payload: Any) -> str:
    """payload에서 검사할 본문 추출"""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, GeneratedText):
        return payload.content
    if isinstance(payload, (ParsedCandidate, ParsedJob)):
        return payload.raw_text
    raise TypeError(f"Unsupported payload for text checks: {type(payload).__name__}")


def term_pattern(term: str) -> Pattern:
    """영숫자 경계를 고려한 용어 매칭 패턴 (C#, C++, Node.js 등 포함)"""
    return re.compile(rf"(?<![A-Za-z0-9]){re.escape(term)}(?![A-Za-z0-9])", re.IGNORECASE)


def mentions(term: str, text: str) -> bool:
    if not term or not text:
        return False
    return term_pattern(term).search(text) is not None


def matched_patterns(patterns: Iterable[str], text: str) -> List[str]:
    """text에서 매칭된 정규식 목록 (대소문자 무시)"""
    return [p for p in patterns if re.search(p, text, re.IGNORECASE)]


def matched_terms(patterns: Iterable[str], text: str) -> List[str]:
    """매칭된 실제 문구 (중복 제거, 소문자)"""
    found: List[str] = []
    for pattern in patterns:
        for match in re.finditer(pattern, text, re.IGNORECASE):
            term = match.group(0).lower()
            if term not in found:
                found.append(term)
    return found
