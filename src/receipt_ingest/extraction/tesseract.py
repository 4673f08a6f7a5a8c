import io
import string

import pytesseract
from PIL import Image, ImageOps
from pytesseract import Output

from receipt_ingest.extraction.base import OcrEngine
from receipt_ingest.logger import get_logger
from receipt_ingest.models import OcrResult, PageSegmentation

logger = get_logger(__name__)

# Receipt alphabet: letters, digits and the punctuation found in prices and dates.
CHAR_WHITELIST = string.ascii_letters + string.digits + ".,/-:$₹"


def decode_image(data: bytes) -> Image.Image:
    """Decode an encoded image to RGB, keeping only the first frame of GIF/WebP animations."""
    with Image.open(io.BytesIO(data)) as image:
        image.seek(0)
        image = ImageOps.exif_transpose(image)
        return image.convert("RGB")


def build_config(mode: PageSegmentation, whitelist: str | None = CHAR_WHITELIST) -> str:
    config = f"--oem 1 --psm {int(mode)}"
    if whitelist:
        config += f" -c tessedit_char_whitelist={whitelist}"
    return config


def text_and_confidence(data: dict[str, list]) -> tuple[str, float]:
    """
    Rebuild text and mean word confidence from ``image_to_data`` output.

    Words are grouped by (block, paragraph, line) so line breaks survive; entries
    with confidence -1 are layout rows, not words.
    """
    lines: dict[tuple[int, int, int], list[str]] = {}
    confidences: list[float] = []
    for index, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        try:
            conf = float(data["conf"][index])
        except (KeyError, IndexError, TypeError, ValueError):
            conf = -1.0
        if not word or conf < 0:
            continue
        key = (
            int(data["block_num"][index]),
            int(data["par_num"][index]),
            int(data["line_num"][index]),
        )
        lines.setdefault(key, []).append(word)
        confidences.append(conf)

    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return text, confidence


class TesseractEngine(OcrEngine):
    def __init__(
        self,
        lang: str = "eng",
        whitelist: str | None = CHAR_WHITELIST,
        timeout: float = 0,
    ):
        self.lang = lang
        self.whitelist = whitelist
        self.timeout = timeout

    def recognize_image(self, data: bytes, mode: PageSegmentation) -> OcrResult:
        image = decode_image(data)
        raw = pytesseract.image_to_data(
            image,
            lang=self.lang,
            config=build_config(mode, self.whitelist),
            output_type=Output.DICT,
            timeout=self.timeout,
        )
        text, confidence = text_and_confidence(raw)
        logger.debug("[OCR] psm=%s words=%s conf=%.1f", int(mode), len(text.split()), confidence)
        return OcrResult(text=text, confidence=confidence)
