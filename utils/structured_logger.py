"""
Structured Logger for Tailor Worker

일관된 로그 포맷과 메타데이터 지원:
- JSON 구조화 로깅 (프로덕션)
- 컬러 콘솔 로깅 (개발)
- 실행 컨텍스트 추적 (session_id / token / stage)
- Sentry 통합
"""

import logging
import json
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Iterator
from dataclasses import dataclass, field, asdict, replace

import sentry_sdk


@dataclass(frozen=True)
class LogContext:
    """로그 컨텍스트"""
    session_id: Optional[str] = None
    token: Optional[str] = None
    stage: Optional[str] = None
    action: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환 (None 제외)"""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


_current_context: ContextVar[LogContext] = ContextVar("tailor_log_context", default=LogContext())


def current_log_context() -> LogContext:
    return _current_context.get()


@contextmanager
def log_context(**fields) -> Iterator[LogContext]:
    """
    블록 안의 모든 로그 레코드에 컨텍스트 부여

    asyncio task마다 contextvars가 복사되므로 동시 실행 파이프라인끼리 섞이지 않습니다.

    사용 예:
        with log_context(session_id=session.id, token=session.token):
            with log_context(stage="Parse"):
                logger.info("...")
    """
    extra = fields.pop("extra", {})
    base = _current_context.get()
    ctx = replace(base, **fields, extra={**base.extra, **extra})
    reset_token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(reset_token)


class ContextFilter(logging.Filter):
    """현재 LogContext를 record.context로 주입"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "context", None):
            record.context = _current_context.get().to_dict() or None
        return True


class StructuredFormatter(logging.Formatter):
    """구조화된 JSON 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
        }

        # 컨텍스트 추가
        if getattr(record, "context", None):
            log_entry["context"] = record.context

        # 에러 정보 추가
        if record.exc_info:
            log_entry["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """컬러 콘솔 포매터 (개발용)"""

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        message = f"{color}[{record.levelname}]{self.RESET} {timestamp} {record.getMessage()}"

        if getattr(record, "context", None):
            ctx_str = " ".join(f"{k}={v}" for k, v in record.context.items())
            message += f" {self.COLORS['DEBUG']}({ctx_str}){self.RESET}"

        if record.exc_info:
            message += f"\n{color}{traceback.format_exception(*record.exc_info)[-1].strip()}{self.RESET}"

        return message


def setup_logging(level: str = "INFO", is_production: bool = False) -> logging.Handler:
    """
    루트 로거 설정

    모든 모듈은 logging.getLogger(__name__)만 사용하고,
    포맷/컨텍스트 주입은 여기서 설정한 핸들러가 담당합니다.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # 기존 핸들러 제거
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if is_production else ColoredFormatter())
    handler.addFilter(ContextFilter())
    root.addHandler(handler)

    # 외부 라이브러리 노이즈 감소
    for noisy in ("httpx", "httpcore", "openai", "pdfminer"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return handler


def init_sentry(dsn: str, environment: str = "development") -> bool:
    """SENTRY_DSN이 설정된 경우에만 초기화"""
    if not dsn:
        return False
    sentry_sdk.init(dsn=dsn, environment=environment, traces_sample_rate=0.0)
    logging.getLogger(__name__).info(f"[Sentry] Initialized (env: {environment})")
    return True


def report_exception(error: BaseException, **tags) -> None:
    """
    Sentry에 예외 보고

    sentry_sdk가 초기화되지 않았으면 capture_exception은 아무것도 하지 않습니다.
    """
    with sentry_sdk.new_scope() as scope:
        for key, value in {**_current_context.get().to_dict(), **tags}.items():
            scope.set_tag(key, str(value))
        sentry_sdk.capture_exception(error)


__all__ = [
    "LogContext",
    "current_log_context",
    "log_context",
    "ContextFilter",
    "StructuredFormatter",
    "ColoredFormatter",
    "setup_logging",
    "init_sentry",
    "report_exception",
]
