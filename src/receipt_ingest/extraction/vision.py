import os
import tempfile

from google.cloud import vision
from pdf2image import convert_from_bytes

from receipt_ingest.extraction.base import VisionService
from receipt_ingest.logger import get_logger

logger = get_logger(__name__)


class GoogleVisionService(VisionService):
    """
    OCR for scanned PDFs through Google Cloud Vision.

    Pages are rendered to PNG files in a temporary directory which is removed on
    every exit path, then sent one at a time to ``document_text_detection``.
    Credentials come from the usual Application Default Credentials lookup.
    """

    def __init__(
        self,
        client: vision.ImageAnnotatorClient | None = None,
        max_pages: int = 5,
        dpi: int = 300,
    ):
        self._client = client
        self.max_pages = max_pages
        self.dpi = dpi

    @property
    def client(self) -> vision.ImageAnnotatorClient:
        if self._client is None:
            self._client = vision.ImageAnnotatorClient()
        return self._client

    def recognize_document(self, data: bytes) -> str:
        page_texts: list[str] = []
        with tempfile.TemporaryDirectory(prefix="receipt-vision-") as workdir:
            paths = convert_from_bytes(
                data,
                dpi=self.dpi,
                fmt="png",
                output_folder=workdir,
                paths_only=True,
                first_page=1,
                last_page=self.max_pages,
            )
            for page_number, path in enumerate(paths, start=1):
                with open(path, "rb") as handle:
                    content = handle.read()
                response = self.client.document_text_detection(image=vision.Image(content=content))
                if response.error.message:
                    raise RuntimeError(f"Vision error on page {page_number}: {response.error.message}")
                text = response.full_text_annotation.text or ""
                logger.debug(
                    "[VISION] page=%s file=%s chars=%s",
                    page_number,
                    os.path.basename(path),
                    len(text),
                )
                if text.strip():
                    page_texts.append(text.strip())

        return "\n".join(page_texts)
