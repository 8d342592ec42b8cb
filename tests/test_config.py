"""
config.py 테스트
"""

import pytest

from config import Settings, StorageBackend, get_settings


class TestSettingsDefaults:
    """기본값 확인 (.env 미사용)"""

    @pytest.fixture
    def settings(self, monkeypatch):
        for name in ("ENV", "STORAGE_BACKEND", "MIN_MATCH_SCORE", "STAGE_TIMEOUTS", "MAX_FILE_SIZE_MB"):
            monkeypatch.delenv(name, raising=False)
        return Settings(_env_file=None)

    def test_thresholds(self, settings):
        assert settings.MIN_MATCH_SCORE == 30.0
        assert settings.MIN_QUALITY_SCORE == 60.0
        assert settings.MIN_TEXT_LENGTH == 100

    def test_session_and_storage(self, settings):
        assert settings.SESSION_TTL_HOURS == 24
        assert settings.STORAGE_BACKEND is StorageBackend.MEMORY
        assert settings.SUPABASE_BUCKET == "generated-documents"

    def test_file_size(self, settings):
        assert settings.max_file_size_bytes == 10 * 1024 * 1024

    def test_not_production(self, settings):
        assert settings.is_production is False


class TestStageTimeout:

    def test_default(self, test_settings):
        assert test_settings.stage_timeout("Match") == 5.0

    def test_override(self, test_settings):
        settings = test_settings.model_copy(update={"STAGE_TIMEOUTS": {"Format&Store": 30}})

        assert settings.stage_timeout("Format&Store") == 30.0
        assert settings.stage_timeout("Parse") == 5.0


class TestEnvironment:

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("ENV", "production")
        monkeypatch.setenv("STORAGE_BACKEND", "supabase")
        monkeypatch.setenv("STAGE_TIMEOUTS", '{"Parse": 60}')
        monkeypatch.setenv("MIN_MATCH_SCORE", "45")

        settings = Settings(_env_file=None)

        assert settings.is_production is True
        assert settings.STORAGE_BACKEND is StorageBackend.SUPABASE
        assert settings.stage_timeout("Parse") == 60.0
        assert settings.MIN_MATCH_SCORE == 45.0

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()
