"""
Job Content Fetcher - 채용공고 페이지 수집

httpx.AsyncClient로 페이지를 가져오고 BeautifulSoup으로 본문 텍스트만 남깁니다.
단일 시도이며 실패는 FetchError로 전달합니다.
"""

import re
import logging
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from exceptions import ErrorCode, FetchError
from .interfaces import JobContentFetcher

logger = logging.getLogger(__name__)


# 본문이 아닌 태그
STRIP_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "svg", "form", "iframe"]

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; TailorWorker/1.0)",
    "Accept": "text/html,application/xhtml+xml,text/plain;q=0.9,*/*;q=0.8",
}


def html_to_text(html: str) -> str:
    """HTML → 줄 단위 본문 텍스트"""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(STRIP_TAGS):
        tag.decompose()

    text = soup.get_text(separator="\n")
    lines = [re.sub(r"[ \t\xa0]+", " ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


class HttpJobContentFetcher(JobContentFetcher):
    """
    HTTP 기반 채용공고 수집기

    Args:
        timeout: 요청 타임아웃 (초)
        client: 주입할 AsyncClient (없으면 요청마다 생성)
    """

    MAX_CONTENT_BYTES = 5 * 1024 * 1024

    def __init__(self, timeout: float = 20.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client

    async def fetch(self, url: str) -> str:
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=DEFAULT_HEADERS)
            else:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout),
                    follow_redirects=True,
                ) as client:
                    response = await client.get(url, headers=DEFAULT_HEADERS)
        except httpx.TimeoutException as e:
            logger.warning(f"[JobFetcher] Timeout fetching {url}: {e}")
            raise FetchError(
                f"Timed out fetching job posting: {url}",
                code=ErrorCode.FETCH_TIMEOUT,
                details={"url": url},
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"[JobFetcher] HTTP error fetching {url}: {e}")
            raise FetchError(
                f"Failed to fetch job posting: {e}",
                details={"url": url, "error_type": type(e).__name__},
            ) from e

        if response.status_code != 200:
            raise FetchError(
                f"Job posting returned HTTP {response.status_code}",
                details={"url": url, "status_code": response.status_code},
            )

        if len(response.content) > self.MAX_CONTENT_BYTES:
            raise FetchError(
                "Job posting page is too large",
                details={"url": url, "size": len(response.content)},
            )

        content_type = response.headers.get("content-type", "")
        if "html" in content_type or not content_type:
            text = html_to_text(response.text)
        else:
            text = response.text.strip()

        logger.info(f"[JobFetcher] Fetched {len(text)} chars from {url}")
        return text
