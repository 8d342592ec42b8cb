"""
LLM Provider - OpenAI 텍스트 생성 클라이언트

- analyze(): JSON 모드 응답을 dict로 반환
- generate(): 자유 텍스트 응답 반환

단일 시도만 하며 (재시도 없음), 모든 실패는 ProviderError로 변환됩니다.
"""

import json
import re
import logging
from typing import Dict, Any, Optional, List, TYPE_CHECKING

from httpx import Timeout
from openai import (
    AsyncOpenAI,
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    OpenAIError,
    RateLimitError,
)

from exceptions import ErrorCode, ProviderError
from .interfaces import TextGenerationProvider

if TYPE_CHECKING:
    from config import Settings
    from .metrics_service import MetricsCollector

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are a careful career-documents assistant. "
    "Only use facts present in the material you are given."
)


def extract_json(text: str) -> Optional[Dict[str, Any]]:
    """텍스트에서 JSON 객체 추출 (코드 블록 포함 처리)"""
    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    # 코드 블록에서 JSON 추출
    for match in re.findall(r"```(?:json)?\s*([\s\S]*?)\s*```", text):
        try:
            parsed = json.loads(match)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    # { } 사이 내용 추출 시도
    for match in re.findall(r"\{[\s\S]*\}", text):
        try:
            parsed = json.loads(match)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    return None


class OpenAITextProvider(TextGenerationProvider):
    """
    OpenAI Chat Completions 기반 프로바이더

    Args:
        api_key: OpenAI API 키
        model: 모델명
        timeout / connect_timeout: httpx.Timeout 설정 (초)
        metrics: 토큰 사용량을 기록할 MetricsCollector (선택)
        client: 주입할 AsyncOpenAI (테스트용)
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = "gpt-4o",
        timeout: float = 90.0,
        connect_timeout: float = 10.0,
        temperature: float = 0.2,
        max_tokens: int = 4000,
        metrics: Optional["MetricsCollector"] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.metrics = metrics

        self.client: Optional[AsyncOpenAI] = client
        if self.client is None and api_key:
            self.client = AsyncOpenAI(
                api_key=api_key,
                timeout=Timeout(timeout, connect=connect_timeout),
                max_retries=0,
            )
            logger.info(f"[OpenAIProvider] Client initialized (model: {model}, timeout: {timeout}s)")
        elif self.client is None:
            logger.warning("[OpenAIProvider] OPENAI_API_KEY 없음")

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        metrics: Optional["MetricsCollector"] = None,
    ) -> "OpenAITextProvider":
        return cls(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
            connect_timeout=settings.OPENAI_CONNECT_TIMEOUT,
            metrics=metrics,
        )

    async def analyze(self, prompt: str) -> Dict[str, Any]:
        raw = await self._complete(prompt, json_mode=True)
        parsed = extract_json(raw)
        if parsed is None:
            logger.error(f"[OpenAIProvider] Unparseable JSON response: {raw[:200]}")
            raise ProviderError(
                "Provider returned an unparseable JSON response",
                code=ErrorCode.INVALID_PROVIDER_RESPONSE,
                details={"model": self.model, "response_preview": raw[:200]},
            )
        return parsed

    async def generate(self, prompt: str) -> str:
        text = (await self._complete(prompt, json_mode=False)).strip()
        if not text:
            raise ProviderError(
                "Provider returned an empty response",
                code=ErrorCode.INVALID_PROVIDER_RESPONSE,
                details={"model": self.model},
            )
        return text

    async def _complete(self, prompt: str, json_mode: bool) -> str:
        if self.client is None:
            raise ProviderError(
                "OpenAI API key not configured",
                code=ErrorCode.PROVIDER_UNAVAILABLE,
            )

        messages: List[Dict[str, str]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except APITimeoutError as e:
            raise ProviderError(
                f"OpenAI request timed out: {e}",
                code=ErrorCode.PROVIDER_TIMEOUT,
                details={"model": self.model},
            ) from e
        except (RateLimitError, APIConnectionError) as e:
            raise ProviderError(
                f"OpenAI unavailable: {e}",
                code=ErrorCode.PROVIDER_UNAVAILABLE,
                details={"model": self.model, "error_type": type(e).__name__},
            ) from e
        except APIStatusError as e:
            code = ErrorCode.PROVIDER_UNAVAILABLE if e.status_code >= 500 else ErrorCode.PROVIDER_ERROR
            raise ProviderError(
                f"OpenAI returned {e.status_code}: {e.message}",
                code=code,
                details={"model": self.model, "status_code": e.status_code},
            ) from e
        except OpenAIError as e:
            raise ProviderError(
                f"OpenAI error: {e}",
                details={"model": self.model, "error_type": type(e).__name__},
            ) from e

        if not response.choices:
            raise ProviderError(
                "OpenAI returned no choices",
                code=ErrorCode.INVALID_PROVIDER_RESPONSE,
                details={"model": self.model},
            )

        if self.metrics is not None and response.usage is not None:
            self.metrics.record_llm_call(
                model=self.model,
                tokens_input=response.usage.prompt_tokens or 0,
                tokens_output=response.usage.completion_tokens or 0,
            )

        return response.choices[0].message.content or ""
