"""
Tailor Exception Hierarchy

4개 카테고리 + ErrorCode Enum으로 파이프라인 실패를 구분합니다.

계층:
    TailorError (base)
    ├── GuardrailViolationError      (입력/출력이 가드레일에서 거부됨 - 호출자가 수정 가능)
    ├── CollaboratorError            (외부 협력자 실패/타임아웃 - 일시적일 수 있음)
    │   ├── UnsupportedFormatError
    │   ├── ProviderError
    │   ├── FetchError
    │   └── RenderError
    ├── InfrastructureError          (세션/스토리지 접근 불가 - 시스템 문제)
    │   └── StorageError
    └── ProgrammingInvariantViolation (코드 결함 - 절대 catch-and-continue 금지)
        ├── KeyAlreadyWrittenError
        └── ContextTypeError

사용 예시:
    raise ProviderError(
        "OpenAI returned 503",
        code=ErrorCode.PROVIDER_UNAVAILABLE,
        details={"status_code": 503}
    )

    try:
        text = await extractor.extract_text(data, mime)
    except CollaboratorError as e:
        logger.warning(f"Collaborator failed [{e.code}]: {e.message}")
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """
    에러 코드

    카테고리는 예외 클래스로, 상세 원인은 ErrorCode로 구분.
    """
    # ─────────────────────────────────────────────────
    # 가드레일
    # ─────────────────────────────────────────────────
    GUARDRAIL_REJECTED = "GUARDRAIL_REJECTED"

    # ─────────────────────────────────────────────────
    # 외부 협력자
    # ─────────────────────────────────────────────────
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    INVALID_PROVIDER_RESPONSE = "INVALID_PROVIDER_RESPONSE"
    FETCH_FAILED = "FETCH_FAILED"
    FETCH_TIMEOUT = "FETCH_TIMEOUT"
    RENDER_FAILED = "RENDER_FAILED"

    # ─────────────────────────────────────────────────
    # 인프라
    # ─────────────────────────────────────────────────
    SESSION_STORE_ERROR = "SESSION_STORE_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"

    # ─────────────────────────────────────────────────
    # 프로그래밍 불변식
    # ─────────────────────────────────────────────────
    KEY_ALREADY_WRITTEN = "KEY_ALREADY_WRITTEN"
    CONTEXT_TYPE_MISMATCH = "CONTEXT_TYPE_MISMATCH"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"


class ErrorCategory(str, Enum):
    """파이프라인 실행 결과의 실패 카테고리 (호출자가 구분하는 단위)"""
    GUARDRAIL_VIOLATION = "guardrail_violation"
    COLLABORATOR_ERROR = "collaborator_error"
    INFRASTRUCTURE_ERROR = "infrastructure_error"
    CANCELLED = "cancelled"


class TailorError(Exception):
    """
    기본 예외

    코어는 어떤 카테고리도 재시도하지 않습니다.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVARIANT_VIOLATION,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.value}, "
            f"message='{self.message[:50]}...')"
        )

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """예외 정보를 딕셔너리로 변환"""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.code.value,
            "error_message": self.message,
            "details": self.details,
        }


class GuardrailViolationError(TailorError):
    """
    가드레일 거부

    파이프라인 내부에서는 예외가 아닌 StageResult로 전달됩니다.
    실패한 결과를 예외로 바꾸고 싶은 호출자가 사용합니다.
    """

    def __init__(
        self,
        message: str,
        violation_type: str = "",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code=ErrorCode.GUARDRAIL_REJECTED, details=details)
        self.violation_type = violation_type


class CollaboratorError(TailorError):
    """외부 협력자 실패 (파싱, LLM, 웹 페치, 렌더링)"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code=code, details=details)


class UnsupportedFormatError(CollaboratorError):
    """인식할 수 없는 MIME 타입"""

    def __init__(self, mime_type: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Unsupported document format: {mime_type}",
            code=ErrorCode.UNSUPPORTED_FORMAT,
            details={"mime_type": mime_type, **(details or {})},
        )
        self.mime_type = mime_type


class ProviderError(CollaboratorError):
    """텍스트 생성 프로바이더 실패 (non-2xx, 타임아웃, 파싱 불가 응답)"""


class FetchError(CollaboratorError):
    """채용공고 페치 실패"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.FETCH_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code=code, details=details)


class RenderError(CollaboratorError):
    """문서 렌더링 실패"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.RENDER_FAILED, details=details)


class InfrastructureError(TailorError):
    """
    인프라 오류

    세션 저장소/파일 저장소에 접근할 수 없는 경우.
    호출자가 입력을 바꿔서 해결할 수 없는 시스템 문제입니다.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SESSION_STORE_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code=code, details=details)


class StorageError(InfrastructureError):
    """Blob 저장소 오류"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.STORAGE_ERROR, details=details)


class ProgrammingInvariantViolation(TailorError):
    """
    프로그래밍 불변식 위반

    항상 코드 결함입니다. 잡아서 계속 진행하지 말 것.
    """


class KeyAlreadyWrittenError(ProgrammingInvariantViolation):
    """SharedContext 키 중복 쓰기"""

    def __init__(self, key: str):
        super().__init__(
            f"Context key '{key}' has already been written",
            code=ErrorCode.KEY_ALREADY_WRITTEN,
            details={"key": key},
        )
        self.key = key


class ContextTypeError(ProgrammingInvariantViolation):
    """SharedContext 키에 선언되지 않은 타입의 값 쓰기"""

    def __init__(self, key: str, expected: str, actual: str):
        super().__init__(
            f"Context key '{key}' expects {expected}, got {actual}",
            code=ErrorCode.CONTEXT_TYPE_MISMATCH,
            details={"key": key, "expected": expected, "actual": actual},
        )
        self.key = key


class ContextKeyNotFoundError(KeyError):
    """아직 쓰여지지 않은 SharedContext 키 조회"""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Context key '{self.key}' has not been written"


__all__ = [
    "ErrorCode",
    "ErrorCategory",
    "TailorError",
    "GuardrailViolationError",
    "CollaboratorError",
    "UnsupportedFormatError",
    "ProviderError",
    "FetchError",
    "RenderError",
    "InfrastructureError",
    "StorageError",
    "ProgrammingInvariantViolation",
    "KeyAlreadyWrittenError",
    "ContextTypeError",
    "ContextKeyNotFoundError",
]
