from __future__ import annotations

from io import BytesIO

from pypdf import PdfReader


def extract_pdf_text(data: bytes) -> str:
    """
    Extracts the text of every page of an uploaded PDF.
    Pages are separated by a blank line.
    """
    reader = PdfReader(BytesIO(data))
    text_parts = [(page.extract_text() or "") for page in reader.pages]
    return "\n\n".join(text_parts).strip()
