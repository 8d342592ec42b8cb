"""
External Collaborator Interfaces

파이프라인 코어가 의존하는 외부 협력자 경계입니다.
구현체는 services/ 아래에 있으며, 오케스트레이터와 에이전트에 주입됩니다.

| Interface              | 실패 시                    |
|------------------------|----------------------------|
| DocumentTextExtractor  | UnsupportedFormatError     |
| TextGenerationProvider | ProviderError              |
| JobContentFetcher      | FetchError                 |
| DocumentRenderer       | RenderError                |
| BlobStore              | StorageError               |
| SessionStore           | InfrastructureError        |
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Any, List, Optional

from schemas.enums import DocumentType, SessionStatus
from schemas.pipeline_types import Session, GeneratedDocument


class DocumentTextExtractor(ABC):
    """이력서 파일 → 텍스트"""

    @abstractmethod
    async def extract_text(self, file_bytes: bytes, mime_type: str) -> str:
        ...


class TextGenerationProvider(ABC):
    """LLM 프로바이더 (단일 시도, 재시도 없음)"""

    @abstractmethod
    async def analyze(self, prompt: str) -> Dict[str, Any]:
        """구조화된 JSON 응답"""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """자유 텍스트 응답"""


class JobContentFetcher(ABC):
    """채용공고 URL → 본문 텍스트"""

    @abstractmethod
    async def fetch(self, url: str) -> str:
        ...


class DocumentRenderer(ABC):
    """생성 텍스트 → 문서 바이트"""

    content_type: str = "application/octet-stream"
    file_extension: str = ""

    @abstractmethod
    async def render(self, text: str, document_type: DocumentType) -> bytes:
        ...


class BlobStore(ABC):
    """생성 문서 저장소"""

    @abstractmethod
    async def upload(self, data: bytes, name: str, content_type: str) -> str:
        """업로드 후 blob reference 반환"""

    @abstractmethod
    async def download(self, reference: str) -> bytes:
        ...

    @abstractmethod
    async def delete(self, reference: str) -> bool:
        ...


class SessionStore(ABC):
    """
    세션 저장소

    상태 전이는 전진만 허용하며, 거부된 전이는 False를 반환합니다.
    조회 결과는 저장소 내부 상태와 공유되지 않는 스냅샷입니다.
    """

    @abstractmethod
    async def create(self, candidate_ref: str, job_ref: str) -> Session:
        ...

    @abstractmethod
    async def find(self, token: str) -> Optional[Session]:
        ...

    @abstractmethod
    async def update_status(
        self,
        session_id: str,
        status: SessionStatus,
        log_entry: Optional[str] = None,
    ) -> bool:
        ...

    @abstractmethod
    async def append_log(self, session_id: str, log_entry: str) -> bool:
        ...

    @abstractmethod
    async def mark_completed(self, session_id: str, log_entry: Optional[str] = None) -> bool:
        ...

    @abstractmethod
    async def attach_documents(self, session_id: str, documents: List[GeneratedDocument]) -> bool:
        ...

    @abstractmethod
    async def expire_sessions(self, now: Optional[datetime] = None) -> int:
        """만료 시각이 지난 비종료 세션을 Expired로 전이, 전이된 수 반환"""
