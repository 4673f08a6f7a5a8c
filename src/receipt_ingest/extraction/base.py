from abc import ABC, abstractmethod

from receipt_ingest.models import OcrResult, PageSegmentation


class OcrEngine(ABC):
    @abstractmethod
    def recognize_image(self, data: bytes, mode: PageSegmentation) -> OcrResult:
        """Run one OCR pass over an encoded image."""
        pass


class PdfTextSource(ABC):
    @abstractmethod
    def extract_pdf_text(self, data: bytes) -> str:
        """Return the embedded text layer, or an empty string when there is none."""
        pass


class VisionService(ABC):
    @abstractmethod
    def recognize_document(self, data: bytes) -> str:
        """OCR a scanned PDF with a hosted vision model."""
        pass
