"""
DocumentWriterAgent - GenerateDocument(CV / CoverLetter) 스테이지

프롬프트는 원본 이력서에 없는 사실을 추가하지 않도록 지시하지만,
실제 검증은 post-gate(Truthfulness/Compliance/Privacy/DocumentQuality)가 수행합니다.
"""

import logging

from schemas.enums import DocumentType
from schemas.pipeline_types import ParsedCandidate, ParsedJob, MatchResult, GeneratedText
from services.interfaces import TextGenerationProvider
from .prompts import cv_prompt, cover_letter_prompt

logger = logging.getLogger(__name__)


class DocumentWriterAgent:
    """CV / 커버레터 생성 에이전트"""

    def __init__(self, provider: TextGenerationProvider):
        self.provider = provider

    async def write_cv(
        self,
        candidate: ParsedCandidate,
        job: ParsedJob,
        matching: MatchResult,
    ) -> GeneratedText:
        content = await self.provider.generate(cv_prompt(candidate, job, matching))
        return self._result(DocumentType.CV, content)

    async def write_cover_letter(
        self,
        candidate: ParsedCandidate,
        job: ParsedJob,
        matching: MatchResult,
    ) -> GeneratedText:
        content = await self.provider.generate(cover_letter_prompt(candidate, job, matching))
        return self._result(DocumentType.COVER_LETTER, content)

    def _result(self, document_type: DocumentType, content: str) -> GeneratedText:
        text = GeneratedText(document_type=document_type, content=content.strip())
        logger.info(f"[DocumentWriterAgent] Generated {document_type.value} ({text.word_count} words)")
        return text
