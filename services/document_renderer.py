"""
Document Renderer - 생성 텍스트를 DOCX로 렌더링

줄 단위 규칙:
- "# ..." / "## ..." → Heading
- 대문자 헤더 ("EXPERIENCE", "Skills:") → Heading 2
- "- ", "* ", "• " → List Bullet
- 그 외 → 일반 단락 (빈 줄은 단락 구분)
"""

import io
import re
import asyncio
import logging

from docx import Document
from docx.shared import Pt

from exceptions import RenderError
from schemas.enums import DocumentType
from .interfaces import DocumentRenderer

logger = logging.getLogger(__name__)


MARKDOWN_HEADING = re.compile(r"^(#{1,6})\s+(.*\S)\s*$")
UPPER_HEADING = re.compile(r"^([A-Z][A-Z &/]{2,40}):?\s*$")
COLON_HEADING = re.compile(r"^([A-Z][A-Za-z &/]{2,40}):\s*$")
BULLET = re.compile(r"^\s*[-*•]\s+(.*\S)\s*$")
INLINE_BOLD = re.compile(r"\*\*(.+?)\*\*")


class DocxDocumentRenderer(DocumentRenderer):
    """python-docx 렌더러"""

    content_type = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    file_extension = ".docx"

    def __init__(self, font_name: str = "Calibri", font_size: int = 11):
        self.font_name = font_name
        self.font_size = font_size

    async def render(self, text: str, document_type: DocumentType) -> bytes:
        if not text or not text.strip():
            raise RenderError("Nothing to render", details={"document_type": document_type.value})
        try:
            data = await asyncio.to_thread(self._render_sync, text)
        except RenderError:
            raise
        except Exception as e:
            logger.error(f"[DocxRenderer] Rendering failed for {document_type.value}: {e}")
            raise RenderError(
                f"DOCX rendering failed: {e}",
                details={"document_type": document_type.value},
            ) from e

        logger.debug(f"[DocxRenderer] Rendered {document_type.value} ({len(data)} bytes)")
        return data

    def _render_sync(self, text: str) -> bytes:
        doc = Document()
        style = doc.styles["Normal"]
        style.font.name = self.font_name
        style.font.size = Pt(self.font_size)

        for line in text.splitlines():
            stripped = line.strip()
            if not stripped:
                continue

            heading = MARKDOWN_HEADING.match(stripped)
            if heading:
                level = min(len(heading.group(1)), 4)
                doc.add_heading(INLINE_BOLD.sub(r"\1", heading.group(2)), level=level)
                continue

            upper = UPPER_HEADING.match(stripped) or COLON_HEADING.match(stripped)
            if upper:
                doc.add_heading(upper.group(1).strip(), level=2)
                continue

            bullet = BULLET.match(line)
            if bullet:
                self._add_runs(doc.add_paragraph(style="List Bullet"), bullet.group(1))
                continue

            self._add_runs(doc.add_paragraph(), stripped)

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    @staticmethod
    def _add_runs(paragraph, text: str):
        """**bold** 구간은 굵게"""
        pos = 0
        for match in INLINE_BOLD.finditer(text):
            if match.start() > pos:
                paragraph.add_run(text[pos:match.start()])
            paragraph.add_run(match.group(1)).bold = True
            pos = match.end()
        if pos < len(text):
            paragraph.add_run(text[pos:])
