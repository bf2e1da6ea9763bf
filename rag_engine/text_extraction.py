import io

from pypdf import PdfReader
from docx import Document as DocxDocument

from .errors import UnreadableFileError


def read_text_from_pdf(data: bytes) -> str:
    pdf = PdfReader(io.BytesIO(data))
    parts = []
    for page in pdf.pages:
        parts.append(page.extract_text() or "")
    # blank line between pages so each page starts a new paragraph
    return "\n\n".join(parts)


def read_text_from_docx(data: bytes) -> str:
    """
    Extract text from DOCX file including both paragraphs and tables.
    Tables are converted to readable text format.
    """
    doc = DocxDocument(io.BytesIO(data))
    parts = []

    for para in doc.paragraphs:
        text = para.text.strip()
        if text:
            parts.append(text)

    for table in doc.tables:
        table_text = extract_table_text(table)
        if table_text:
            parts.append(table_text)

    return "\n\n".join(parts)


def extract_table_text(table) -> str:
    """
    Convert a DOCX table to readable text format.
    Each row is preserved with clear separators.
    """
    lines = []

    for row in table.rows:
        cells = [cell.text.strip() for cell in row.cells]

        # Skip completely empty rows
        if not any(cells):
            continue

        lines.append(" | ".join(cells))

    return "\n".join(lines)


def read_text_from_txt(data: bytes, encoding="utf-8") -> str:
    return data.decode(encoding, errors="ignore")


def extract_text(data: bytes, extension: str, filename: str = "") -> str:
    """
    Turn raw file bytes into text for chunking.

    PDF and DOCX go through their parsers; everything else is decoded as UTF-8.
    Parser failures surface as UnreadableFileError.
    """
    ext = extension.lower()
    try:
        if ext == "pdf":
            return read_text_from_pdf(data)
        if ext == "docx":
            return read_text_from_docx(data)
    except Exception as e:
        raise UnreadableFileError(
            f"Failed to extract text from {filename or 'file'}: {e}",
            {"extension": ext},
        ) from e
    return read_text_from_txt(data)
