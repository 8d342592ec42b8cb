"""
Document Text Extractor - 이력서 파일 텍스트 추출

- PDF: pdfplumber (페이지별 추출 후 결합)
- DOCX: python-docx (본문 단락 + 테이블)
- DOC: python-docx로 열 수 있는 경우만 지원 (레거시 바이너리 포맷은 거부)

파싱은 CPU 작업이므로 스레드에서 실행합니다.
"""

import io
import asyncio
import logging
from typing import List

import pdfplumber
from docx import Document

from exceptions import CollaboratorError, ErrorCode, UnsupportedFormatError
from .interfaces import DocumentTextExtractor

logger = logging.getLogger(__name__)


PDF_MIME_TYPES = {"application/pdf"}
DOCX_MIME_TYPES = {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}
DOC_MIME_TYPES = {"application/msword"}

SUPPORTED_MIME_TYPES = PDF_MIME_TYPES | DOCX_MIME_TYPES | DOC_MIME_TYPES


class PlumberDocxTextExtractor(DocumentTextExtractor):
    """pdfplumber + python-docx 기반 추출기"""

    async def extract_text(self, file_bytes: bytes, mime_type: str) -> str:
        mime = (mime_type or "").split(";")[0].strip().lower()
        if mime not in SUPPORTED_MIME_TYPES:
            raise UnsupportedFormatError(mime_type)

        if mime in PDF_MIME_TYPES:
            text = await asyncio.to_thread(self._extract_pdf, file_bytes)
        else:
            text = await asyncio.to_thread(self._extract_docx, file_bytes, mime)

        logger.info(f"[DocumentExtractor] Extracted {len(text)} chars from {mime}")
        return text

    def _extract_pdf(self, file_bytes: bytes) -> str:
        try:
            with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
                texts: List[str] = []
                for i, page in enumerate(pdf.pages):
                    try:
                        texts.append(page.extract_text() or "")
                    except Exception as e:
                        logger.warning(f"[DocumentExtractor] Failed to extract text from page {i + 1}: {e}")
                        texts.append("")
        except Exception as e:
            logger.error(f"[DocumentExtractor] PDF parsing failed: {e}")
            raise CollaboratorError(
                f"PDF parsing failed: {e}",
                code=ErrorCode.EXTRACTION_FAILED,
                details={"mime_type": "application/pdf"},
            ) from e

        return "\n\n".join(t for t in texts if t).strip()

    def _extract_docx(self, file_bytes: bytes, mime: str) -> str:
        try:
            doc = Document(io.BytesIO(file_bytes))
        except Exception as e:
            if mime in DOC_MIME_TYPES:
                # 레거시 .doc 바이너리
                raise UnsupportedFormatError(mime, details={"reason": "legacy binary .doc"}) from e
            logger.error(f"[DocumentExtractor] DOCX parsing failed: {e}")
            raise CollaboratorError(
                f"DOCX parsing failed: {e}",
                code=ErrorCode.EXTRACTION_FAILED,
                details={"mime_type": mime},
            ) from e

        texts = [para.text for para in doc.paragraphs if para.text.strip()]

        # 테이블 내용
        for table in doc.tables:
            for row in table.rows:
                row_texts = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_texts:
                    texts.append(" | ".join(row_texts))

        return "\n".join(texts).strip()
