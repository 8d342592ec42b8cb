"""
JobExtractionAgent - ExtractJob 스테이지

채용공고 URL → 페이지 본문 → LLM 구조화 → ParsedJob
"""

import logging
from typing import Optional

from schemas.pipeline_types import ParsedJob
from services.interfaces import JobContentFetcher, TextGenerationProvider
from .prompts import job_extraction_prompt

logger = logging.getLogger(__name__)


class JobExtractionAgent:
    """
    채용공고 추출 에이전트

    요청에 company_name이 있으면 추출된 회사명이 비어 있을 때 대신 사용합니다.
    """

    MAX_CONTENT_CHARS = 30000

    def __init__(self, fetcher: JobContentFetcher, provider: TextGenerationProvider):
        self.fetcher = fetcher
        self.provider = provider

    async def extract(self, job_url: str, company_name: Optional[str] = None) -> ParsedJob:
        text = (await self.fetcher.fetch(job_url)).strip()
        if not text:
            logger.warning(f"[JobExtractionAgent] Empty job posting: {job_url}")
            return ParsedJob(company=company_name or "", source_url=job_url, raw_text="")

        content = text[:self.MAX_CONTENT_CHARS]
        data = await self.provider.analyze(job_extraction_prompt(content, job_url))
        job = ParsedJob.from_dict(data, source_url=job_url, raw_text=content)

        if company_name and not job.company:
            job.company = company_name.strip()
        if not job.company_info.name:
            job.company_info.name = job.company

        logger.info(
            f"[JobExtractionAgent] Extracted '{job.title}' at {job.company or '(unknown)'}: "
            f"{len(job.required_skills)} required skills"
        )
        return job
