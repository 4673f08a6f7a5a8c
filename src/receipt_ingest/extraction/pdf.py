import io

import pdfplumber
from pdfminer.pdfparser import PDFSyntaxError
from pdfplumber.utils.exceptions import PdfminerException

from receipt_ingest.extraction.base import PdfTextSource
from receipt_ingest.logger import get_logger

logger = get_logger(__name__)


class PdfPlumberTextSource(PdfTextSource):
    """Reads the embedded text layer. Scanned PDFs come back empty."""

    def __init__(self, max_pages: int | None = None):
        self.max_pages = max_pages

    def extract_pdf_text(self, data: bytes) -> str:
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                pages = pdf.pages if self.max_pages is None else pdf.pages[: self.max_pages]
                texts = [page.extract_text() or "" for page in pages]
        except (PdfminerException, PDFSyntaxError) as e:
            logger.warning("[PDF] Could not open PDF: %s", e)
            return ""

        text = "\n".join(t for t in texts if t.strip())
        logger.debug("[PDF] pages=%s chars=%s", len(texts), len(text))
        return text
