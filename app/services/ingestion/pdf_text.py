import logging
from pathlib import Path

import fitz  # PyMuPDF

from app.core.config import settings
from app.core.errors import ExtractionError

logger = logging.getLogger(__name__)


def extract_pdf_text(pdf_path: Path, max_pages: int | None = None) -> str:
    """
    Concatenate the text of every page, one page per line block.

    Raises ExtractionError for unreadable, encrypted or oversized PDFs.
    """
    limit = max_pages if max_pages is not None else settings.MAX_PDF_PAGES

    # Open PDF
    try:
        doc = fitz.open(str(pdf_path))
    except Exception as e:
        raise ExtractionError(f"INVALID_PDF: {e}") from e

    try:
        # Handle encrypted PDFs: try empty password, otherwise reject
        if doc.is_encrypted and not doc.authenticate(""):
            raise ExtractionError("ENCRYPTED_PDF")

        if doc.page_count > limit:
            raise ExtractionError("PDF_TOO_MANY_PAGES")

        parts: list[str] = []
        for i in range(doc.page_count):
            page = doc.load_page(i)
            parts.append(page.get_text("text").replace("\x00", " ").rstrip("\n"))

    except ExtractionError:
        raise
    except Exception as e:
        raise ExtractionError(str(e)) from e
    finally:
        doc.close()

    return "\n".join(parts) + ("\n" if parts else "")


class PdfTextExtractor:
    def __init__(self, max_pages: int | None = None):
        self.max_pages = max_pages

    def extract_text(self, file_path: Path) -> str:
        text = extract_pdf_text(Path(file_path), max_pages=self.max_pages)
        logger.debug("Extracted %d chars from %s", len(text), file_path)
        return text
