"""
ReviewAgent - Review 스테이지

생성된 CV와 커버레터를 원본 이력서와 대조하여 리뷰합니다.
두 문서의 리뷰는 서로 독립적이므로 동시에 요청합니다.
"""

import asyncio
import logging

from schemas.enums import DocumentType
from schemas.pipeline_types import (
    ParsedCandidate,
    ParsedJob,
    GeneratedText,
    DocumentReview,
    ReviewResult,
)
from services.interfaces import TextGenerationProvider
from .prompts import review_prompt

logger = logging.getLogger(__name__)


DOCUMENT_LABELS = {
    DocumentType.CV: "CV",
    DocumentType.COVER_LETTER: "cover letter",
}


class ReviewAgent:
    """생성 문서 리뷰 에이전트"""

    def __init__(self, provider: TextGenerationProvider):
        self.provider = provider

    async def review(
        self,
        candidate: ParsedCandidate,
        job: ParsedJob,
        cv: GeneratedText,
        cover_letter: GeneratedText,
    ) -> ReviewResult:
        cv_review, cover_letter_review = await asyncio.gather(
            self._review_one(candidate, job, cv),
            self._review_one(candidate, job, cover_letter),
        )
        result = ReviewResult(cv=cv_review, cover_letter=cover_letter_review)

        logger.info(
            f"[ReviewAgent] CV quality {cv_review.quality_score:.0f}, "
            f"cover letter quality {cover_letter_review.quality_score:.0f}"
        )
        return result

    async def _review_one(
        self,
        candidate: ParsedCandidate,
        job: ParsedJob,
        document: GeneratedText,
    ) -> DocumentReview:
        label = DOCUMENT_LABELS[document.document_type]
        data = await self.provider.analyze(
            review_prompt(label, candidate.raw_text, document.content, job)
        )
        return DocumentReview.from_dict(document.document_type, data)
