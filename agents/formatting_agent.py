"""
FormattingAgent - Format&Store 스테이지

GeneratedText → render → upload → GeneratedDocument

렌더링이나 업로드 중 실패하면 (타임아웃 취소 포함) 이미 올라간 blob을
best-effort로 삭제한 뒤 원래 예외를 그대로 전달합니다.
StorageError는 오케스트레이터에서 INFRASTRUCTURE_ERROR가 됩니다.
"""

import re
import asyncio
import logging
from typing import List

from exceptions import StorageError
from schemas.enums import DocumentType, DocumentStatus
from schemas.pipeline_types import ParsedCandidate, ParsedJob, GeneratedText, GeneratedDocument
from services.interfaces import BlobStore, DocumentRenderer

logger = logging.getLogger(__name__)


UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\s\x00-\x1f]')
MAX_FILENAME_LENGTH = 200


def sanitize_filename_part(value: str, fallback: str = "Unknown") -> str:
    """파일명에 안전하지 않은 문자는 '_'로 치환"""
    cleaned = UNSAFE_FILENAME_CHARS.sub("_", (value or "").strip())
    cleaned = re.sub(r"_+", "_", cleaned).strip("_.")
    return cleaned or fallback


def document_file_name(
    document_type: DocumentType,
    candidate: ParsedCandidate,
    job: ParsedJob,
    extension: str = ".docx",
) -> str:
    """
    CV_{First}_{Last}_{JobTitle}.docx
    CoverLetter_{First}_{Last}_{Company}.docx
    """
    target = job.title if document_type is DocumentType.CV else job.company
    parts = [
        document_type.value,
        sanitize_filename_part(candidate.first_name),
        sanitize_filename_part(candidate.last_name),
        sanitize_filename_part(target),
    ]
    stem = "_".join(parts)[:MAX_FILENAME_LENGTH - len(extension)]
    return f"{stem}{extension}"


class FormattingAgent:
    """문서 렌더링 + 저장 에이전트"""

    def __init__(self, renderer: DocumentRenderer, blob_store: BlobStore):
        self.renderer = renderer
        self.blob_store = blob_store

    async def format_and_store(
        self,
        session_id: str,
        candidate: ParsedCandidate,
        job: ParsedJob,
        texts: List[GeneratedText],
    ) -> List[GeneratedDocument]:
        documents: List[GeneratedDocument] = []
        uploaded: List[str] = []

        try:
            for text in texts:
                data = await self.renderer.render(text.content, text.document_type)
                file_name = document_file_name(
                    text.document_type, candidate, job, self.renderer.file_extension or ".docx"
                )
                reference = await self.blob_store.upload(data, file_name, self.renderer.content_type)

                uploaded.append(reference)
                documents.append(GeneratedDocument(
                    file_name=file_name,
                    document_type=text.document_type,
                    content_type=self.renderer.content_type,
                    file_size_bytes=len(data),
                    blob_reference=reference,
                    session_id=session_id,
                    status=DocumentStatus.COMPLETED,
                ))
                logger.info(f"[FormattingAgent] Stored {file_name} ({len(data)} bytes)")
        except (Exception, asyncio.CancelledError):
            # 타임아웃 취소를 포함한 모든 실패에서 이미 올린 blob 정리
            await self._rollback(uploaded)
            raise

        return documents

    async def discard(self, documents: List[GeneratedDocument]):
        """저장 이후 실패한 실행의 문서 blob 삭제"""
        await self._rollback([d.blob_reference for d in documents if d.blob_reference])

    async def _rollback(self, references: List[str]):
        """이미 업로드한 blob 삭제 (실패는 로그만)"""
        for reference in references:
            try:
                await self.blob_store.delete(reference)
            except StorageError as e:
                logger.warning(f"[FormattingAgent] Rollback delete failed for {reference}: {e}")
        if references:
            logger.info(f"[FormattingAgent] Rolled back {len(references)} uploaded documents")
