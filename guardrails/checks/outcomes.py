"""
스테이지 결과 가드레일

- MatchResultGuardrail: Match 출력 (점수 범위)
- ReviewOutcomeGuardrail: Review 출력 (리뷰어가 찾은 조작/품질 문제)
- DocumentSetGuardrail: Format&Store 출력 (CV 1개 + 커버레터 1개)
"""

import logging
from collections import Counter
from typing import Any, List

from schemas.enums import DocumentType
from schemas.pipeline_types import MatchResult, ReviewResult, GeneratedDocument
from ..base import GateDirection, GuardrailCheck, GuardrailPolicy, GuardrailVerdict

logger = logging.getLogger(__name__)


class MatchResultGuardrail(GuardrailCheck):
    name = "MatchResultGuardrail"
    priority = 3
    policy = GuardrailPolicy.BLOCK
    violation_policies = {
        "LowMatchScore": GuardrailPolicy.WARN,
    }

    def __init__(self, min_match_score: float = 30.0):
        self.min_match_score = min_match_score

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        if not isinstance(payload, MatchResult):
            raise TypeError(f"{self.name} expects MatchResult, got {type(payload).__name__}")

        score = payload.match_score
        if not 0 <= score <= 100:
            return self.trip(
                "InvalidMatchScore",
                f"Match score out of range: {score}",
                details={"match_score": score},
            )

        if score < self.min_match_score:
            return self.trip(
                "LowMatchScore",
                f"Low match score ({score:.0f}/100)",
                details={"match_score": score, "threshold": self.min_match_score, "skill_gaps": payload.skill_gaps},
                recommendations=payload.recommendations,
            )

        return self.passed(match_score=score)


class ReviewOutcomeGuardrail(GuardrailCheck):
    """리뷰 결과에 따른 진행 여부"""

    name = "ReviewOutcomeGuardrail"
    priority = 2
    policy = GuardrailPolicy.BLOCK
    violation_policies = {
        "HumanReviewRequired": GuardrailPolicy.WARN,
        "LowQualityScore": GuardrailPolicy.WARN,
    }

    def __init__(self, min_quality_score: float = 60.0):
        self.min_quality_score = min_quality_score

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        if not isinstance(payload, ReviewResult):
            raise TypeError(f"{self.name} expects ReviewResult, got {type(payload).__name__}")

        untruthful = [r for r in payload.reviews if not r.is_truthful or r.fabricated_content]
        if untruthful:
            fabricated: List[str] = [item for r in untruthful for item in r.fabricated_content]
            return self.trip(
                "FabricatedContent",
                "Reviewer flagged fabricated content in "
                + ", ".join(r.document_type.value for r in untruthful),
                details={"fabricated_content": fabricated},
                recommendations=[r for rv in untruthful for r in rv.recommendations],
            )

        needs_human = [r.document_type.value for r in payload.reviews if r.requires_human_review]
        if needs_human:
            return self.trip(
                "HumanReviewRequired",
                f"Human review recommended for: {', '.join(needs_human)}",
                details={"documents": needs_human},
            )

        low = {
            r.document_type.value: r.quality_score
            for r in payload.reviews if r.quality_score < self.min_quality_score
        }
        if low:
            return self.trip(
                "LowQualityScore",
                f"Quality score below {self.min_quality_score:.0f}: {low}",
                details={"scores": low, "threshold": self.min_quality_score},
            )

        return self.passed(
            cv_quality_score=payload.cv.quality_score,
            cover_letter_quality_score=payload.cover_letter.quality_score,
        )


class DocumentSetGuardrail(GuardrailCheck):
    """저장된 문서 세트 완전성"""

    name = "DocumentSetGuardrail"
    priority = 2
    policy = GuardrailPolicy.BLOCK

    EXPECTED = Counter({DocumentType.CV: 1, DocumentType.COVER_LETTER: 1})

    async def evaluate(self, direction: GateDirection, payload: Any, context) -> GuardrailVerdict:
        documents = list(payload or [])
        if not all(isinstance(d, GeneratedDocument) for d in documents):
            raise TypeError(f"{self.name} expects a sequence of GeneratedDocument")

        counts = Counter(d.document_type for d in documents)
        broken = [d.file_name for d in documents if not d.blob_reference or d.file_size_bytes <= 0]
        if counts != self.EXPECTED or broken:
            return self.trip(
                "IncompleteDocumentSet",
                "Generated document set is incomplete",
                details={
                    "counts": {k.value: v for k, v in counts.items()},
                    "broken_documents": broken,
                },
            )

        return self.passed(document_count=len(documents))
