import os
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from time import perf_counter

from receipt_ingest.domain.timefmt import elapsed_ms, format_duration
from receipt_ingest.errors import ExtractionError, UnsupportedMimeTypeError
from receipt_ingest.extraction.base import OcrEngine, PdfTextSource, VisionService
from receipt_ingest.logger import get_logger
from receipt_ingest.models import OcrPass, PageSegmentation, RawExtraction

logger = get_logger(__name__)

IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
PDF_MIME_TYPE = "application/pdf"
SUPPORTED_MIME_TYPES = IMAGE_MIME_TYPES | {PDF_MIME_TYPE}
_MIME_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}

# Block, line, word, column, auto. Order is the tie-break order.
DEFAULT_OCR_MODES: tuple[PageSegmentation, ...] = (
    PageSegmentation.UNIFORM_BLOCK,
    PageSegmentation.SINGLE_LINE,
    PageSegmentation.SINGLE_WORD,
    PageSegmentation.SINGLE_COLUMN,
    PageSegmentation.AUTO,
)
MIN_PASS_TEXT_LENGTH = 10
PDF_TEXT_CONFIDENCE = 85.0
VISION_CONFIDENCE = 95.0


def normalize_mime_type(mime_type: str | None) -> str | None:
    """Lower-case, drop parameters, resolve aliases. Returns None for unsupported types."""
    if not mime_type:
        return None
    base = mime_type.split(";", 1)[0].strip().lower()
    base = _MIME_ALIASES.get(base, base)
    return base if base in SUPPORTED_MIME_TYPES else None


def clamp_confidence(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def select_best_pass(passes: Iterable[OcrPass]) -> OcrPass | None:
    """
    Pick the pass with the highest ``confidence * len(text) / 100``.

    Passes with fewer than ten characters of text are ignored. On equal scores
    the earlier pass wins.
    """
    best: OcrPass | None = None
    for candidate in passes:
        if len(candidate.text) < MIN_PASS_TEXT_LENGTH:
            continue
        if best is None or candidate.score > best.score:
            best = candidate
    return best


class TextExtractor:
    def __init__(
        self,
        ocr_engine: OcrEngine,
        pdf_source: PdfTextSource,
        vision: VisionService | None = None,
        modes: Sequence[PageSegmentation] = DEFAULT_OCR_MODES,
        max_workers: int | None = None,
    ):
        self.ocr_engine = ocr_engine
        self.pdf_source = pdf_source
        self.vision = vision
        self.modes = tuple(modes)
        self.max_workers = max_workers

    def extract(self, data: bytes, mime_type: str) -> RawExtraction:
        normalized = normalize_mime_type(mime_type)
        if normalized is None:
            raise UnsupportedMimeTypeError(mime_type)
        if not data:
            raise ExtractionError("Uploaded file is empty.")

        started_at = perf_counter()
        if normalized == PDF_MIME_TYPE:
            text, confidence, method = self._extract_pdf(data)
        else:
            text, confidence, method = self._extract_image(data)

        elapsed = elapsed_ms(started_at)
        logger.info(
            "[EXTRACT] %s: %s chars, confidence %.1f in %s",
            method,
            len(text),
            confidence,
            format_duration(elapsed),
        )
        return RawExtraction(
            text=text,
            confidence=clamp_confidence(confidence),
            method=method,
            elapsed_ms=elapsed,
        )

    def run_ocr_passes(self, data: bytes) -> list[OcrPass]:
        """Run every mode, in parallel, and return the passes that finished, in mode order."""
        if not self.modes:
            return []
        workers = self.max_workers or os.cpu_count() or 1
        workers = max(1, min(len(self.modes), workers))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ocr") as pool:
            futures = [
                (mode, pool.submit(self.ocr_engine.recognize_image, data, mode))
                for mode in self.modes
            ]
            passes: list[OcrPass] = []
            for mode, future in futures:
                try:
                    result = future.result()
                except Exception as e:
                    logger.warning("[OCR] psm=%s failed: %s", int(mode), e)
                    continue
                ocr_pass = OcrPass(
                    mode=mode,
                    text=result.text.strip(),
                    confidence=clamp_confidence(result.confidence),
                )
                logger.debug(
                    "[OCR] psm=%s chars=%s confidence=%.1f score=%.2f",
                    int(mode),
                    len(ocr_pass.text),
                    ocr_pass.confidence,
                    ocr_pass.score,
                )
                passes.append(ocr_pass)
        return passes

    def _extract_image(self, data: bytes) -> tuple[str, float, str]:
        passes = self.run_ocr_passes(data)
        best = select_best_pass(passes)
        if best is None:
            raise ExtractionError("All OCR passes failed to extract readable text.")
        logger.info(
            "[OCR] Best pass psm=%s (%s of %s usable)",
            int(best.mode),
            sum(1 for p in passes if len(p.text) >= MIN_PASS_TEXT_LENGTH),
            len(self.modes),
        )
        return best.text, best.confidence, "ocr-multipass"

    def _extract_pdf(self, data: bytes) -> tuple[str, float, str]:
        text = self.pdf_source.extract_pdf_text(data).strip()
        if text:
            return text, PDF_TEXT_CONFIDENCE, "pdf-text"

        if self.vision is None:
            raise ExtractionError("PDF has no text layer and no vision OCR is configured.")

        logger.info("[PDF] Empty text layer, escalating to vision OCR.")
        try:
            text = self.vision.recognize_document(data).strip()
        except Exception as e:
            raise ExtractionError(f"Vision OCR failed: {e}") from e
        if not text:
            raise ExtractionError("Vision OCR found no text in the PDF.")
        return text, VISION_CONFIDENCE, "vision-api"
