"""
Guardrail Registry - 스테이지/방향별 체크 등록 테이블

체크는 시작 시점에 명시적으로 등록되며, 등록 순서가 동일 priority 내 보고 순서가 됩니다.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Tuple, Iterable, Optional, TYPE_CHECKING

from schemas.enums import StageName
from .base import GateDirection, GuardrailCheck, GuardrailPolicy
from .checks import (
    ResumeFileGuardrail,
    ResumeContentGuardrail,
    PrivacyGuardrail,
    JobUrlGuardrail,
    JobContentGuardrail,
    MatchResultGuardrail,
    TruthfulnessGuardrail,
    ComplianceGuardrail,
    DocumentQualityGuardrail,
    ReviewOutcomeGuardrail,
    DocumentSetGuardrail,
)

if TYPE_CHECKING:
    from config import Settings

logger = logging.getLogger(__name__)


class GuardrailRegistry:
    """(stage_name, direction) → 체크 목록"""

    def __init__(self):
        self._table: Dict[Tuple[str, GateDirection], List[GuardrailCheck]] = defaultdict(list)

    def register(self, stage_name: str, direction: GateDirection, check: GuardrailCheck) -> "GuardrailRegistry":
        key = (str(getattr(stage_name, "value", stage_name)), direction)
        self._table[key].append(check)
        logger.debug(f"[GuardrailRegistry] {key[0]} {direction.value} += {check.name}")
        return self

    def register_many(
        self,
        stage_name: str,
        direction: GateDirection,
        checks: Iterable[GuardrailCheck],
    ) -> "GuardrailRegistry":
        for check in checks:
            self.register(stage_name, direction, check)
        return self

    def checks_for(self, stage_name: str, direction: GateDirection) -> Tuple[GuardrailCheck, ...]:
        key = (str(getattr(stage_name, "value", stage_name)), direction)
        return tuple(self._table.get(key, ()))

    def describe(self) -> Dict[str, Dict[str, List[str]]]:
        """등록 현황 (health/디버깅용)"""
        result: Dict[str, Dict[str, List[str]]] = {}
        for (stage, direction), checks in self._table.items():
            result.setdefault(stage, {})[direction.value] = [c.name for c in checks]
        return result

    def __len__(self) -> int:
        return sum(len(v) for v in self._table.values())


def build_default_registry(settings: Optional["Settings"] = None) -> GuardrailRegistry:
    """
    기본 등록 테이블

    | Stage                         | Pre              | Post                                          |
    |-------------------------------|------------------|-----------------------------------------------|
    | Parse                         | ResumeFile       | ResumeContent, Privacy(WARN)                  |
    | ExtractJob                    | JobUrl           | JobContent                                    |
    | Match                         | -                | MatchResult                                   |
    | GenerateDocument(CV/CL)       | -                | Truthfulness, Compliance, Privacy, Quality    |
    | Review                        | -                | ReviewOutcome                                 |
    | Format&Store                  | -                | DocumentSet                                   |
    """
    if settings is None:
        from config import get_settings
        settings = get_settings()

    pre, post = GateDirection.PRE_STAGE, GateDirection.POST_STAGE
    registry = GuardrailRegistry()

    registry.register(StageName.PARSE, pre, ResumeFileGuardrail(settings.max_file_size_bytes))
    registry.register_many(StageName.PARSE, post, [
        ResumeContentGuardrail(settings.MIN_TEXT_LENGTH),
        PrivacyGuardrail(policy=GuardrailPolicy.WARN),
    ])

    registry.register(StageName.EXTRACT_JOB, pre, JobUrlGuardrail())
    registry.register(StageName.EXTRACT_JOB, post, JobContentGuardrail())

    registry.register(StageName.MATCH, post, MatchResultGuardrail(settings.MIN_MATCH_SCORE))

    for stage in (StageName.GENERATE_CV, StageName.GENERATE_COVER_LETTER):
        registry.register_many(stage, post, [
            TruthfulnessGuardrail(),
            ComplianceGuardrail(),
            PrivacyGuardrail(policy=GuardrailPolicy.BLOCK),
            DocumentQualityGuardrail(),
        ])

    registry.register(StageName.REVIEW, post, ReviewOutcomeGuardrail(settings.MIN_QUALITY_SCORE))
    registry.register(StageName.FORMAT_STORE, post, DocumentSetGuardrail())

    logger.info(f"[GuardrailRegistry] Default registry built ({len(registry)} checks)")
    return registry
