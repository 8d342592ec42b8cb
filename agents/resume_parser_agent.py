"""
ResumeParserAgent - Parse 스테이지

이력서 파일 → 텍스트 추출 → LLM 구조화 → ParsedCandidate

raw_text는 항상 추출된 원문이며, 이후 진실성 검증의 기준이 됩니다.
추출 결과가 비어 있으면 LLM을 호출하지 않고 빈 프로필을 반환합니다
(post-gate의 ResumeContentGuardrail이 거부).
"""

import logging

from schemas.pipeline_types import PipelineRequest, ParsedCandidate
from services.interfaces import DocumentTextExtractor, TextGenerationProvider
from .prompts import resume_parsing_prompt

logger = logging.getLogger(__name__)


class ResumeParserAgent:
    """이력서 파싱 에이전트"""

    def __init__(self, extractor: DocumentTextExtractor, provider: TextGenerationProvider):
        self.extractor = extractor
        self.provider = provider

    async def parse(self, request: PipelineRequest) -> ParsedCandidate:
        text = (await self.extractor.extract_text(request.resume_bytes, request.resume_mime_type)).strip()
        if not text:
            logger.warning(f"[ResumeParserAgent] No text extracted from {request.resume_filename}")
            return ParsedCandidate(raw_text="")

        data = await self.provider.analyze(resume_parsing_prompt(text))
        candidate = ParsedCandidate.from_dict(data, raw_text=text)

        logger.info(
            f"[ResumeParserAgent] Parsed {candidate.full_name or '(unnamed)'}: "
            f"{len(candidate.work_experiences)} experiences, {len(candidate.skills)} skills"
        )
        return candidate
