"""Plain-text extraction from uploaded file bytes.

Each supported format is one FormatHandler registered under its media types
and file extensions. Unknown types and parser failures degrade to empty text
so a single unreadable file never aborts a batch.
"""

import io
import mimetypes
from abc import ABC, abstractmethod
from pathlib import PurePosixPath

from bs4 import BeautifulSoup
from docx import Document as DocxDocument
from openpyxl import load_workbook
from pydantic import BaseModel
from pypdf import PdfReader

from shared.helper.HelperConfig import HelperConfig


class ExtractionResult(BaseModel):
    text: str
    media_type: str
    degraded: bool = False
    reason: str | None = None


##########################################
############ FORMAT HANDLERS #############
##########################################

class FormatHandler(ABC):
    media_types: tuple[str, ...] = ()
    extensions: tuple[str, ...] = ()

    @abstractmethod
    def extract(self, content: bytes) -> str:
        pass


def decode_text(content: bytes) -> str:
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("latin-1", errors="replace")


class PlainTextHandler(FormatHandler):
    media_types = ("text/plain", "text/markdown", "text/csv", "application/json", "text/tab-separated-values")
    extensions = (".txt", ".md", ".markdown", ".csv", ".json", ".tsv", ".log")

    def extract(self, content: bytes) -> str:
        return decode_text(content)


class HtmlHandler(FormatHandler):
    media_types = ("text/html", "application/xhtml+xml")
    extensions = (".html", ".htm", ".xhtml")

    def extract(self, content: bytes) -> str:
        soup = BeautifulSoup(decode_text(content), "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        lines = [line.strip() for line in soup.get_text("\n").splitlines()]
        return "\n".join(line for line in lines if line)


class PdfHandler(FormatHandler):
    media_types = ("application/pdf",)
    extensions = (".pdf",)

    def extract(self, content: bytes) -> str:
        reader = PdfReader(io.BytesIO(content))
        pages = []
        for page in reader.pages:
            text = page.extract_text()
            if text:
                pages.append(text)
        return "\n\n".join(pages)


class DocxHandler(FormatHandler):
    media_types = ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",)
    extensions = (".docx",)

    def extract(self, content: bytes) -> str:
        doc = DocxDocument(io.BytesIO(content))
        parts = [p.text for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    parts.append(" | ".join(cells))
        return "\n\n".join(parts)


class XlsxHandler(FormatHandler):
    media_types = ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",)
    extensions = (".xlsx",)

    def extract(self, content: bytes) -> str:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        sheets = []
        try:
            for sheet in wb.worksheets:
                rows = []
                for row in sheet.iter_rows(values_only=True):
                    cells = ["" if v is None else str(v) for v in row]
                    if any(c.strip() for c in cells):
                        rows.append(" | ".join(cells))
                if rows:
                    sheets.append(f"Sheet: {sheet.title}\n" + "\n".join(rows))
        finally:
            wb.close()
        return "\n\n".join(sheets)


DEFAULT_HANDLERS: tuple[FormatHandler, ...] = (
    PlainTextHandler(),
    HtmlHandler(),
    PdfHandler(),
    DocxHandler(),
    XlsxHandler(),
)


##########################################
############## NORMALIZER ################
##########################################

class ContentNormalizer:
    """Looks up the handler for a media type and runs it, never raising."""

    GENERIC_TYPES = ("", "application/octet-stream", "binary/octet-stream")

    def __init__(self, helper_config: HelperConfig, handlers: tuple[FormatHandler, ...] = DEFAULT_HANDLERS) -> None:
        self.logging = helper_config.get_logger()
        self._by_media_type: dict[str, FormatHandler] = {}
        self._by_extension: dict[str, FormatHandler] = {}
        for handler in handlers:
            for media_type in handler.media_types:
                self._by_media_type[media_type] = handler
            for ext in handler.extensions:
                self._by_extension[ext] = handler

    def resolve_media_type(self, declared: str | None, filename: str | None = None) -> str:
        """Prefer a declared type we can handle, then the filename extension.

        Browsers and archive entries often report ``application/octet-stream``,
        so the extension is the better signal in that case.
        """
        declared = (declared or "").split(";", 1)[0].strip().lower()
        if declared in self._by_media_type:
            return declared
        if filename:
            ext = PurePosixPath(filename).suffix.lower()
            handler = self._by_extension.get(ext)
            if handler is not None:
                return handler.media_types[0]
            guessed, _ = mimetypes.guess_type(filename)
            if guessed and (declared in self.GENERIC_TYPES or not declared):
                return guessed
        return declared or "application/octet-stream"

    def supports(self, media_type: str) -> bool:
        return media_type in self._by_media_type

    def extract(self, content: bytes, media_type: str) -> str:
        """Return the plain text of ``content``; empty string on any failure."""
        return self.extract_with_diagnostic(content, media_type).text

    def extract_with_diagnostic(self, content: bytes, media_type: str, label: str = "") -> ExtractionResult:
        handler = self._by_media_type.get(media_type)
        if handler is None:
            self.logging.warning("No extractor for media type '%s' (%s); indexing without text.", media_type, label or "upload")
            return ExtractionResult(text="", media_type=media_type, degraded=True, reason=f"no extractor for '{media_type}'")
        try:
            text = handler.extract(content)
        except Exception as exc:
            self.logging.warning("Extraction failed for %s as '%s': %s", label or "upload", media_type, exc)
            return ExtractionResult(text="", media_type=media_type, degraded=True, reason=f"{type(exc).__name__}: {exc}")
        return ExtractionResult(text=text.strip(), media_type=media_type)
