from unittest.mock import MagicMock

import pytest

from receipt_ingest.errors import ExtractionError, UnsupportedMimeTypeError
from receipt_ingest.extraction.extractor import (
    DEFAULT_OCR_MODES,
    TextExtractor,
    normalize_mime_type,
    select_best_pass,
)
from receipt_ingest.models import OcrPass, OcrResult, PageSegmentation


def _pass(mode: PageSegmentation, confidence: float, length: int) -> OcrPass:
    return OcrPass(mode=mode, text="x" * length, confidence=confidence)


def _engine(results: dict[PageSegmentation, OcrResult | Exception]) -> MagicMock:
    def recognize(data: bytes, mode: PageSegmentation) -> OcrResult:
        outcome = results[mode]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    engine = MagicMock()
    engine.recognize_image.side_effect = recognize
    return engine


@pytest.fixture
def pdf_source() -> MagicMock:
    source = MagicMock()
    source.extract_pdf_text.return_value = ""
    return source


def test_select_best_pass_uses_confidence_times_length() -> None:
    confidences = [40, 60, 85, 70, 55]
    lengths = [500, 20, 30, 200, 400]
    passes = [
        _pass(mode, conf, length)
        for mode, conf, length in zip(DEFAULT_OCR_MODES, confidences, lengths)
    ]

    # Scores: 200, 12, 25.5, 140, 220
    best = select_best_pass(passes)

    assert best is passes[4]
    assert best.score == pytest.approx(220.0)


def test_select_best_pass_tie_keeps_earlier_pass() -> None:
    first = _pass(PageSegmentation.UNIFORM_BLOCK, 50, 200)   # 50 * 2.0 = 100
    second = _pass(PageSegmentation.SINGLE_LINE, 100, 100)   # 100 * 1.0 = 100

    assert select_best_pass([first, second]) is first
    assert select_best_pass([second, first]) is second


def test_select_best_pass_ignores_short_text() -> None:
    short = _pass(PageSegmentation.UNIFORM_BLOCK, 99, 9)
    usable = _pass(PageSegmentation.AUTO, 10, 10)

    assert select_best_pass([short, usable]) is usable
    assert select_best_pass([short]) is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("image/jpeg", "image/jpeg"),
        ("IMAGE/PNG", "image/png"),
        ("image/jpg", "image/jpeg"),
        ("application/pdf; charset=binary", "application/pdf"),
        ("image/webp", "image/webp"),
        ("text/plain", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_mime_type(raw: str | None, expected: str | None) -> None:
    assert normalize_mime_type(raw) == expected


def test_extract_image_selects_best_pass(pdf_source: MagicMock) -> None:
    engine = _engine({
        PageSegmentation.UNIFORM_BLOCK: OcrResult(text="Coffee 4.50\nBagel 3.00", confidence=80),
        PageSegmentation.SINGLE_LINE: OcrResult(text="Coffee", confidence=95),
        PageSegmentation.SINGLE_WORD: OcrResult(text="", confidence=0),
        PageSegmentation.SINGLE_COLUMN: OcrResult(text="Cofee 4.5O Bagel", confidence=40),
        PageSegmentation.AUTO: RuntimeError("tesseract crashed"),
    })
    extractor = TextExtractor(ocr_engine=engine, pdf_source=pdf_source, max_workers=2)

    result = extractor.extract(b"fake-image", "image/png")

    assert result.method == "ocr-multipass"
    assert result.text == "Coffee 4.50\nBagel 3.00"
    assert result.confidence == 80
    assert 0 <= result.confidence <= 100
    assert result.elapsed_ms >= 0
    assert engine.recognize_image.call_count == len(DEFAULT_OCR_MODES)
    pdf_source.extract_pdf_text.assert_not_called()


def test_extract_image_clamps_confidence(pdf_source: MagicMock) -> None:
    engine = MagicMock()
    engine.recognize_image.return_value = OcrResult(text="Receipt line 12.00", confidence=140)
    extractor = TextExtractor(ocr_engine=engine, pdf_source=pdf_source, modes=[PageSegmentation.AUTO])

    result = extractor.extract(b"img", "image/jpeg")

    assert result.confidence == 100


def test_extract_image_fails_when_every_pass_is_unusable(pdf_source: MagicMock) -> None:
    engine = _engine({
        PageSegmentation.UNIFORM_BLOCK: OcrResult(text="  abc  ", confidence=90),
        PageSegmentation.SINGLE_LINE: RuntimeError("boom"),
        PageSegmentation.SINGLE_WORD: OcrResult(text="", confidence=0),
        PageSegmentation.SINGLE_COLUMN: OcrResult(text="123456789", confidence=99),
        PageSegmentation.AUTO: OSError("missing binary"),
    })
    extractor = TextExtractor(ocr_engine=engine, pdf_source=pdf_source)

    with pytest.raises(ExtractionError):
        extractor.extract(b"img", "image/png")


def test_extract_rejects_unsupported_mime(pdf_source: MagicMock) -> None:
    extractor = TextExtractor(ocr_engine=MagicMock(), pdf_source=pdf_source)

    with pytest.raises(UnsupportedMimeTypeError):
        extractor.extract(b"data", "text/csv")


def test_extract_rejects_empty_buffer(pdf_source: MagicMock) -> None:
    extractor = TextExtractor(ocr_engine=MagicMock(), pdf_source=pdf_source)

    with pytest.raises(ExtractionError):
        extractor.extract(b"", "image/png")


def test_extract_pdf_prefers_text_layer(pdf_source: MagicMock) -> None:
    pdf_source.extract_pdf_text.return_value = "  01/02/2024 Grocery Mart 54.20  \n"
    vision = MagicMock()
    extractor = TextExtractor(ocr_engine=MagicMock(), pdf_source=pdf_source, vision=vision)

    result = extractor.extract(b"%PDF-1.7", "application/pdf")

    assert result.method == "pdf-text"
    assert result.confidence == 85
    assert result.text == "01/02/2024 Grocery Mart 54.20"
    vision.recognize_document.assert_not_called()


def test_extract_pdf_escalates_to_vision(pdf_source: MagicMock) -> None:
    vision = MagicMock()
    vision.recognize_document.return_value = "Hotel Alpina 220.00\n"
    extractor = TextExtractor(ocr_engine=MagicMock(), pdf_source=pdf_source, vision=vision)

    result = extractor.extract(b"%PDF-1.7", "application/pdf")

    assert result.method == "vision-api"
    assert result.confidence == 95
    assert result.text == "Hotel Alpina 220.00"


def test_extract_pdf_without_text_or_vision_fails(pdf_source: MagicMock) -> None:
    extractor = TextExtractor(ocr_engine=MagicMock(), pdf_source=pdf_source)

    with pytest.raises(ExtractionError):
        extractor.extract(b"%PDF-1.7", "application/pdf")


@pytest.mark.parametrize("vision_outcome", [RuntimeError("quota exceeded"), "   "])
def test_extract_pdf_vision_failure_is_extraction_error(
    pdf_source: MagicMock, vision_outcome: Exception | str
) -> None:
    vision = MagicMock()
    if isinstance(vision_outcome, Exception):
        vision.recognize_document.side_effect = vision_outcome
    else:
        vision.recognize_document.return_value = vision_outcome
    extractor = TextExtractor(ocr_engine=MagicMock(), pdf_source=pdf_source, vision=vision)

    with pytest.raises(ExtractionError):
        extractor.extract(b"%PDF-1.7", "application/pdf")
