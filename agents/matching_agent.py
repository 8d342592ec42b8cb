"""
MatchingAgent - Match 스테이지

ParsedCandidate + ParsedJob → MatchResult

점수 범위 검증(0-100)은 post-gate의 MatchResultGuardrail이 담당하므로
여기서는 숫자가 아닌 값만 0으로 정규화합니다.
"""

import logging

from schemas.pipeline_types import ParsedCandidate, ParsedJob, MatchResult
from services.interfaces import TextGenerationProvider
from .prompts import matching_prompt

logger = logging.getLogger(__name__)


class MatchingAgent:
    """지원자-공고 매칭 에이전트"""

    def __init__(self, provider: TextGenerationProvider):
        self.provider = provider

    async def match(self, candidate: ParsedCandidate, job: ParsedJob) -> MatchResult:
        data = await self.provider.analyze(matching_prompt(candidate, job))
        result = MatchResult.from_dict(data)

        logger.info(
            f"[MatchingAgent] Match score {result.match_score:.0f} "
            f"({len(result.matching_skills)} matching, {len(result.skill_gaps)} gaps)"
        )
        return result
