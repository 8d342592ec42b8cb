"""
Tailor Worker Configuration
"""

from enum import Enum
from functools import lru_cache
from typing import Dict
from pydantic_settings import BaseSettings


class StorageBackend(str, Enum):
    MEMORY = "memory"      # 단일 프로세스 (개발/테스트)
    SUPABASE = "supabase"  # Supabase DB + Storage


class Settings(BaseSettings):
    """Worker 설정"""

    # ─────────────────────────────────────────────────
    # 기본 설정
    # ─────────────────────────────────────────────────
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # ─────────────────────────────────────────────────
    # Supabase
    # ─────────────────────────────────────────────────
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""  # Service Role Key (서버용)
    SUPABASE_BUCKET: str = "generated-documents"
    SUPABASE_SESSION_TABLE: str = "tailoring_sessions"

    STORAGE_BACKEND: StorageBackend = StorageBackend.MEMORY

    # ─────────────────────────────────────────────────
    # OpenAI
    # ─────────────────────────────────────────────────
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TIMEOUT_SECONDS: float = 90.0
    OPENAI_CONNECT_TIMEOUT: float = 10.0

    # ─────────────────────────────────────────────────
    # 파일 처리 제한
    # ─────────────────────────────────────────────────
    MAX_FILE_SIZE_MB: int = 10
    MIN_TEXT_LENGTH: int = 100  # 최소 유효 이력서 텍스트 길이

    # ─────────────────────────────────────────────────
    # 스테이지 타임아웃 (초)
    # ─────────────────────────────────────────────────
    STAGE_TIMEOUT_SECONDS: float = 120.0
    # 스테이지별 override, 예: '{"Parse": 60, "Format&Store": 30}'
    STAGE_TIMEOUTS: Dict[str, float] = {}

    HTTP_FETCH_TIMEOUT: float = 20.0

    # ─────────────────────────────────────────────────
    # 가드레일 임계값
    # ─────────────────────────────────────────────────
    MIN_MATCH_SCORE: float = 30.0
    MIN_QUALITY_SCORE: float = 60.0

    # ─────────────────────────────────────────────────
    # 세션
    # ─────────────────────────────────────────────────
    SESSION_TTL_HOURS: int = 24

    # ─────────────────────────────────────────────────
    # Sentry (선택)
    # ─────────────────────────────────────────────────
    SENTRY_DSN: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    def stage_timeout(self, stage_name: str) -> float:
        """스테이지 타임아웃 (override 없으면 기본값)"""
        return float(self.STAGE_TIMEOUTS.get(stage_name, self.STAGE_TIMEOUT_SECONDS))


settings = Settings()


@lru_cache()
def get_settings() -> Settings:
    """설정 싱글톤 반환"""
    return settings
