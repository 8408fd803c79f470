"""
cardsmith/extract.py — Per-format content extraction.

extract(file_bytes, file_name, mime_or_extension) -> ExtractedContent
    Pure extraction from in-memory bytes. No DB access.
      PDF:        pypdf, page texts separated by blank lines
      DOCX/DOC:   python-docx, paragraphs separated by blank lines
      XLSX:       openpyxl, raw cell rows per worksheet   -> RowsContent
      XLS:        xlrd, raw cell rows per worksheet       -> RowsContent
                  (cropped to the used range; blank leading rows/columns dropped)
      TXT/MD:     UTF-8 (undecodable bytes replaced)
      JSON:       parsed, then pretty-printed (2-space indent)
      PNG/JPG:    fabricated description block — pixels are never decoded
    Everything except spreadsheets yields TextContent.

Errors
------
    UnsupportedFormat  — extension not in the extractor table (.gif, .exe, …)
    ExtractionFailed   — the underlying parser raised; never swallowed here
"""

from __future__ import annotations

import datetime as _dt
import io
import json
import logging
from pathlib import PurePath
from typing import Any, Callable

from cardsmith.errors import ExtractionFailed, UnsupportedFormat
from cardsmith.models import ExtractedContent, RowsContent, Sheet, TextContent

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Declared MIME type → extension, used when the file name carries none.
MIME_EXTENSIONS: dict[str, str] = {
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/vnd.ms-excel": ".xls",
    "text/plain": ".txt",
    "text/markdown": ".md",
    "application/json": ".json",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
}

IMAGE_DESCRIPTION = (
    "This is an image file that may contain visual information, charts, "
    "diagrams, or other visual content that could be relevant for learning "
    "and reference purposes."
)


# ---------------------------------------------------------------------------
# Format resolution
# ---------------------------------------------------------------------------

def resolve_extension(file_name: str, mime_or_extension: str | None = None) -> str:
    """
    Lowercased extension of file_name (".pdf").
    Falls back to the declared MIME type, or an explicit ".ext", when the
    name has no suffix.
    """
    ext = PurePath(file_name).suffix.lower()
    if ext or not mime_or_extension:
        return ext
    hint = mime_or_extension.strip().lower()
    if hint.startswith("."):
        return hint
    return MIME_EXTENSIONS.get(hint.split(";")[0].strip(), "")


def supported_extensions() -> list[str]:
    return sorted(_EXTRACTORS)


# ---------------------------------------------------------------------------
# extract — dispatch
# ---------------------------------------------------------------------------

def extract(
    file_bytes: bytes,
    file_name: str,
    mime_or_extension: str | None = None,
) -> ExtractedContent:
    """
    Extract content from one uploaded file.
    Raises UnsupportedFormat or ExtractionFailed.
    """
    ext = resolve_extension(file_name, mime_or_extension)
    entry = _EXTRACTORS.get(ext)
    if entry is None:
        raise UnsupportedFormat(ext)

    fmt, fn = entry
    logger.debug("Extracting %s as %s (%d bytes)", file_name, fmt, len(file_bytes))
    try:
        return fn(file_bytes, file_name)
    except ExtractionFailed:
        raise
    except Exception as e:
        logger.warning("%s extraction failed for %s: %s", fmt, file_name, e)
        raise ExtractionFailed(fmt, e) from e


# ---------------------------------------------------------------------------
# Free-text formats
# ---------------------------------------------------------------------------

def _extract_pdf(data: bytes, file_name: str) -> TextContent:
    import pypdf  # type: ignore

    reader = pypdf.PdfReader(io.BytesIO(data), strict=False)
    pages = [(page.extract_text() or "") for page in reader.pages]
    return TextContent("\n\n".join(pages))


def _extract_word(data: bytes, file_name: str) -> TextContent:
    """
    .docx, and .doc files that are really OOXML under a legacy name.
    True binary Word 97 documents fail inside python-docx and surface as
    ExtractionFailed.
    """
    from docx import Document  # type: ignore

    doc = Document(io.BytesIO(data))
    return TextContent("\n\n".join(p.text for p in doc.paragraphs))


def _extract_text(data: bytes, file_name: str) -> TextContent:
    return TextContent(data.decode("utf-8", errors="replace"))


def _extract_json(data: bytes, file_name: str) -> TextContent:
    parsed = json.loads(data.decode("utf-8-sig"))
    return TextContent(json.dumps(parsed, indent=2, ensure_ascii=False))


def _extract_image(data: bytes, file_name: str) -> TextContent:
    path = PurePath(file_name)
    return TextContent(
        f"Image: {path.stem}\n"
        f"File Type: {path.suffix.upper().lstrip('.')}\n"
        f"File Size: {len(data) / 1024:.2f} KB\n"
        f"Description: {IMAGE_DESCRIPTION}"
    )


# ---------------------------------------------------------------------------
# Spreadsheets
# ---------------------------------------------------------------------------

def normalize_cell(value: Any) -> Any:
    """
    Map a raw spreadsheet cell to a JSON-friendly value.
    None → "", dates/times → ISO string, integral floats → int.
    """
    if value is None:
        return ""
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _trim_row(row: list[Any]) -> list[Any]:
    """Drop trailing blank cells so ragged rows compare cleanly."""
    end = len(row)
    while end and str(row[end - 1]).strip() == "":
        end -= 1
    return row[:end]


def _extract_xlsx(data: bytes, file_name: str) -> RowsContent:
    import openpyxl  # type: ignore

    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        sheets: list[Sheet] = []
        for ws in wb.worksheets:
            rows = [
                _trim_row([normalize_cell(v) for v in row])
                for row in ws.iter_rows(values_only=True)
            ]
            rows, first_row = _used_range(rows)
            if not rows:
                logger.debug("Skipping empty sheet %s in %s", ws.title, file_name)
                continue
            sheets.append(Sheet(ws.title, rows, first_row))
        return RowsContent(sheets)
    finally:
        wb.close()


def _extract_xls(data: bytes, file_name: str) -> RowsContent:
    import xlrd  # type: ignore

    wb = xlrd.open_workbook(file_contents=data)
    sheets: list[Sheet] = []
    for idx in range(wb.nsheets):
        sh = wb.sheet_by_index(idx)
        rows: list[list[Any]] = []
        for row_idx in range(sh.nrows):
            cells: list[Any] = []
            for col in range(sh.ncols):
                cell = sh.cell(row_idx, col)
                if cell.ctype == xlrd.XL_CELL_DATE:
                    value: Any = xlrd.xldate.xldate_as_datetime(cell.value, wb.datemode)
                elif cell.ctype == xlrd.XL_CELL_BOOLEAN:
                    value = bool(cell.value)
                else:
                    value = cell.value
                cells.append(normalize_cell(value))
            rows.append(_trim_row(cells))
        rows, first_row = _used_range(rows)
        if not rows:
            logger.debug("Skipping empty sheet %s in %s", sh.name, file_name)
            continue
        sheets.append(Sheet(sh.name, rows, first_row))
    return RowsContent(sheets)


def _used_range(rows: list[list[Any]]) -> tuple[list[list[Any]], int]:
    """
    Crop trimmed rows to the sheet's used range: leading/trailing blank rows
    and leading blank columns are dropped. Returns (rows, first_row) where
    first_row is the 1-based sheet row holding the header.
    """
    start, end = 0, len(rows)
    while end and not rows[end - 1]:
        end -= 1
    while start < end and not rows[start]:
        start += 1
    used = rows[start:end]
    if not used:
        return [], 1

    first_col = min(
        next(i for i, v in enumerate(row) if str(v).strip() != "")
        for row in used if row
    )
    return [row[first_col:] for row in used], start + 1


# ---------------------------------------------------------------------------
# Extractor table
# ---------------------------------------------------------------------------

_EXTRACTORS: dict[str, tuple[str, Callable[[bytes, str], ExtractedContent]]] = {
    ".pdf":  ("PDF", _extract_pdf),
    ".docx": ("Word document", _extract_word),
    ".doc":  ("Word document", _extract_word),
    ".xlsx": ("Excel file", _extract_xlsx),
    ".xls":  ("Excel file", _extract_xls),
    ".txt":  ("Text file", _extract_text),
    ".md":   ("Text file", _extract_text),
    ".json": ("JSON file", _extract_json),
    ".png":  ("Image file", _extract_image),
    ".jpg":  ("Image file", _extract_image),
    ".jpeg": ("Image file", _extract_image),
}
