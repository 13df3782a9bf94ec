"""Normalize uploaded research files into one filename-tagged corpus."""

from __future__ import annotations

import html
import io
import os
import re
from dataclasses import dataclass
from typing import Iterable

from docx import Document
from docx.table import Table
from docx.text.hyperlink import Hyperlink
from docx.text.paragraph import Paragraph

from research_gantt.errors import ExtractionError, InputError
from research_gantt.logging import get_logger
from research_gantt.models import GroundingContext

logger = get_logger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
SUPPORTED_MIMES = {"text/markdown", "text/plain", DOCX_MIME}
SUPPORTED_EXTENSIONS = (".md", ".txt", ".docx")
# Browsers frequently send these for .md files.
GENERIC_MIMES = {"", "application/octet-stream", "text/x-markdown"}

START_MARKER = "--- Start of file: {name} ---"
END_MARKER = "--- End of file: {name} ---"
_HEADING_RE = re.compile(r"^Heading (\d)$")


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename or "")[1].lower()

    @property
    def is_docx(self) -> bool:
        return self.extension == ".docx" or self.content_type == DOCX_MIME


def validate_uploads(files: Iterable[UploadedFile]) -> None:
    """Reject anything outside the extension and MIME allow-lists."""
    rejected: list[str] = []
    for f in files:
        mime = (f.content_type or "").split(";")[0].strip().lower()
        ext_ok = f.extension in SUPPORTED_EXTENSIONS
        mime_ok = mime in SUPPORTED_MIMES or mime in GENERIC_MIMES
        if not (ext_ok and mime_ok):
            rejected.append(f.filename or "<unnamed>")
    if rejected:
        raise InputError(
            f"The following files are not supported: {', '.join(rejected)}. "
            f"Please upload only {', '.join(SUPPORTED_EXTENSIONS)} files."
        )


def _runs_to_html(paragraph: Paragraph) -> str:
    parts: list[str] = []
    for item in paragraph.iter_inner_content():
        if isinstance(item, Hyperlink):
            text = html.escape(item.text)
            url = item.url
            if url:
                parts.append(f'<a href="{html.escape(url, quote=True)}">{text}</a>')
            else:
                parts.append(text)
        else:
            parts.append(html.escape(item.text))
    return "".join(parts)


def _paragraph_to_html(paragraph: Paragraph) -> str:
    inner = _runs_to_html(paragraph)
    if not inner.strip():
        return ""
    style = paragraph.style.name if paragraph.style is not None else ""
    heading = _HEADING_RE.match(style or "")
    if heading:
        level = heading.group(1)
        return f"<h{level}>{inner}</h{level}>"
    if style and style.startswith("List"):
        return f"<ul><li>{inner}</li></ul>"
    return f"<p>{inner}</p>"


def _table_to_html(table: Table) -> str:
    rows: list[str] = []
    for row in table.rows:
        cells = []
        for cell in row.cells:
            body = "".join(_paragraph_to_html(p) for p in cell.paragraphs)
            cells.append(f"<td>{body}</td>")
        rows.append(f"<tr>{''.join(cells)}</tr>")
    return f"<table>{''.join(rows)}</table>"


def docx_to_html(data: bytes) -> str:
    """Convert a .docx payload to HTML, keeping hyperlinks as ``<a href>`` tags."""
    doc = Document(io.BytesIO(data))
    blocks: list[str] = []
    for block in doc.iter_inner_content():
        if isinstance(block, Table):
            blocks.append(_table_to_html(block))
        else:
            rendered = _paragraph_to_html(block)
            if rendered:
                blocks.append(rendered)
    return "".join(blocks)


def extract_text(upload: UploadedFile) -> str:
    if upload.is_docx:
        return docx_to_html(upload.data)
    return upload.data.decode("utf-8-sig")


def wrap_file(name: str, content: str) -> str:
    return f"\n\n{START_MARKER.format(name=name)}\n{content}\n{END_MARKER.format(name=name)}\n"


def sort_uploads(files: Iterable[UploadedFile]) -> list[UploadedFile]:
    return sorted(files, key=lambda f: (f.filename.casefold(), f.filename))


def normalize_upload(files: list[UploadedFile]) -> GroundingContext:
    """Build the grounding corpus; any failure aborts with no partial result."""
    if not files:
        raise InputError("Please upload at least one research document.")
    ordered = sort_uploads(files)
    blocks: list[str] = []
    for upload in ordered:
        try:
            content = extract_text(upload)
        except Exception as exc:
            logger.error("File extraction failed for %s: %s", upload.filename, exc)
            raise ExtractionError("Error processing uploaded files.") from exc
        blocks.append(wrap_file(upload.filename, content))
    filenames = [f.filename for f in ordered]
    logger.info("Normalized %d research file(s): %s", len(filenames), ", ".join(filenames))
    return GroundingContext(corpus="".join(blocks), filenames=filenames)


def split_corpus(corpus: str) -> list[tuple[str, int, int]]:
    """Return ``(filename, body_start, body_end)`` for every wrapped block."""
    out: list[tuple[str, int, int]] = []
    for match in re.finditer(r"--- Start of file: (.+?) ---\n", corpus):
        name = match.group(1)
        end_marker = f"\n{END_MARKER.format(name=name)}"
        end = corpus.find(end_marker, match.end())
        if end == -1:
            end = len(corpus)
        out.append((name, match.end(), end))
    return out
