"""
SharedContext - 파이프라인 실행 단위의 공유 상태

스테이지 간 데이터 전달의 유일한 통로입니다.

- 키는 닫힌 집합(ContextKey)이며 키마다 값 타입이 선언되어 있음
- 한 번 쓴 키는 실행이 끝날 때까지 변경 불가 (write-once)
- 쓰지 않은 키 조회는 기본값 없이 ContextKeyNotFoundError / NOT_FOUND
- 가드레일과 스테이지 입력 선택자는 읽기 전용 ContextView만 받음
"""

import logging
from enum import Enum
from typing import Dict, Any, List, Tuple

from exceptions import (
    KeyAlreadyWrittenError,
    ContextTypeError,
    ContextKeyNotFoundError,
    ProgrammingInvariantViolation,
)
from schemas.pipeline_types import (
    PipelineRequest,
    ParsedCandidate,
    ParsedJob,
    MatchResult,
    GeneratedText,
    ReviewResult,
    GeneratedDocument,
)
from .processing_log import ProcessingLog, ProcessingLogEntry
from .warnings import WarningCollector

logger = logging.getLogger(__name__)


class ContextKey(str, Enum):
    """SharedContext에 쓸 수 있는 키"""
    REQUEST = "request"
    CANDIDATE = "candidate"
    JOB = "job"
    MATCHING = "matching"
    CV_TEXT = "cv_text"
    COVER_LETTER_TEXT = "cover_letter_text"
    REVIEW = "review"
    DOCUMENTS = "documents"


# 키별 값 타입
KEY_TYPES: Dict[ContextKey, type] = {
    ContextKey.REQUEST: PipelineRequest,
    ContextKey.CANDIDATE: ParsedCandidate,
    ContextKey.JOB: ParsedJob,
    ContextKey.MATCHING: MatchResult,
    ContextKey.CV_TEXT: GeneratedText,
    ContextKey.COVER_LETTER_TEXT: GeneratedText,
    ContextKey.REVIEW: ReviewResult,
    ContextKey.DOCUMENTS: tuple,
}


class _NotFound:
    """조회 실패 센티넬"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


def _coerce_key(key: Any) -> ContextKey:
    try:
        return ContextKey(key)
    except ValueError:
        raise ProgrammingInvariantViolation(f"Unknown context key: {key!r}") from None


class SharedContext:
    """
    파이프라인 공유 컨텍스트

    하나의 실행에만 속하며 실행 간에 공유되지 않습니다.
    """

    def __init__(self, session_id: str, token: str):
        self._session_id = session_id
        self._token = token
        self._values: Dict[ContextKey, Any] = {}
        self._extras: Dict[str, Any] = {}
        self.log = ProcessingLog()
        self.warnings = WarningCollector()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def token(self) -> str:
        return self._token

    # ─────────────────────────────────────────────────
    # 타입 지정 키
    # ─────────────────────────────────────────────────

    def get(self, key: Any) -> Any:
        """쓰여진 값 반환. 없으면 ContextKeyNotFoundError"""
        key = _coerce_key(key)
        if key not in self._values:
            raise ContextKeyNotFoundError(key.value)
        return self._values[key]

    def find(self, key: Any) -> Any:
        """쓰여진 값 또는 NOT_FOUND"""
        return self._values.get(_coerce_key(key), NOT_FOUND)

    def has(self, key: Any) -> bool:
        return _coerce_key(key) in self._values

    def set(self, key: Any, value: Any) -> None:
        """
        키 쓰기 (한 번만)

        Raises:
            KeyAlreadyWrittenError: 이미 쓰여진 키
            ContextTypeError: 선언된 타입과 다른 값
        """
        key = _coerce_key(key)
        if key in self._values:
            logger.error(f"[SharedContext] Double write to '{key.value}' (session={self._session_id})")
            raise KeyAlreadyWrittenError(key.value)

        if key is ContextKey.DOCUMENTS and isinstance(value, list):
            value = tuple(value)

        expected = KEY_TYPES[key]
        if not isinstance(value, expected):
            raise ContextTypeError(key.value, expected.__name__, type(value).__name__)
        if key is ContextKey.DOCUMENTS and not all(isinstance(d, GeneratedDocument) for d in value):
            raise ContextTypeError(key.value, "tuple[GeneratedDocument]", "mixed sequence")

        self._values[key] = value
        logger.debug(f"[SharedContext] '{key.value}' written (session={self._session_id})")

    def written_keys(self) -> List[ContextKey]:
        """쓰여진 순서대로 키 목록"""
        return list(self._values.keys())

    # ─────────────────────────────────────────────────
    # 보조 메타데이터 (스테이지 로직이 의존하지 않음)
    # ─────────────────────────────────────────────────

    def set_extra(self, name: str, value: Any) -> None:
        if name in self._extras:
            raise KeyAlreadyWrittenError(f"extras.{name}")
        self._extras[name] = value

    def get_extra(self, name: str) -> Any:
        return self._extras.get(name, NOT_FOUND)

    @property
    def extras(self) -> Dict[str, Any]:
        return dict(self._extras)

    # ─────────────────────────────────────────────────
    # 로그
    # ─────────────────────────────────────────────────

    def append_log(self, stage: str, event: str, message: str, **details) -> ProcessingLogEntry:
        return self.log.append(stage, event, message, **details)

    def view(self) -> "ContextView":
        return ContextView(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self._session_id,
            "token": self._token,
            "written_keys": [k.value for k in self._values],
            "extras": list(self._extras.keys()),
            "log_entries": len(self.log),
            "warnings": self.warnings.get_summary(),
        }


class ContextView:
    """
    읽기 전용 컨텍스트 뷰

    가드레일 체크는 이 뷰만 받으므로 컨텍스트를 변경할 수 없습니다.
    """

    __slots__ = ("_context",)

    def __init__(self, context: SharedContext):
        self._context = context

    @property
    def session_id(self) -> str:
        return self._context.session_id

    @property
    def token(self) -> str:
        return self._context.token

    def get(self, key: Any) -> Any:
        return self._context.get(key)

    def find(self, key: Any) -> Any:
        return self._context.find(key)

    def has(self, key: Any) -> bool:
        return self._context.has(key)

    def get_extra(self, name: str) -> Any:
        return self._context.get_extra(name)

    def written_keys(self) -> Tuple[ContextKey, ...]:
        return tuple(self._context.written_keys())
