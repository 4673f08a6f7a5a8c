import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from pdfplumber.utils.exceptions import PdfminerException

from receipt_ingest.extraction.pdf import PdfPlumberTextSource
from receipt_ingest.extraction.vision import GoogleVisionService


def _pdf_with_pages(*texts: str | None) -> MagicMock:
    pdf = MagicMock()
    pdf.pages = []
    for text in texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pdf.pages.append(page)
    pdf.__enter__.return_value = pdf
    return pdf


def test_pdfplumber_joins_page_text() -> None:
    pdf = _pdf_with_pages("Statement March\n01/03 Rent 900.00", None, "02/03 Cafe 4.20")

    with patch("receipt_ingest.extraction.pdf.pdfplumber.open", return_value=pdf):
        text = PdfPlumberTextSource().extract_pdf_text(b"%PDF")

    assert text == "Statement March\n01/03 Rent 900.00\n02/03 Cafe 4.20"


def test_pdfplumber_respects_max_pages() -> None:
    pdf = _pdf_with_pages("page one", "page two", "page three")

    with patch("receipt_ingest.extraction.pdf.pdfplumber.open", return_value=pdf):
        text = PdfPlumberTextSource(max_pages=2).extract_pdf_text(b"%PDF")

    assert text == "page one\npage two"


def test_pdfplumber_unreadable_pdf_is_empty() -> None:
    with patch(
        "receipt_ingest.extraction.pdf.pdfplumber.open",
        side_effect=PdfminerException("No /Root object!"),
    ):
        assert PdfPlumberTextSource().extract_pdf_text(b"garbage") == ""


def test_vision_renders_pages_in_scoped_tempdir() -> None:
    seen_folders: list[str] = []

    def fake_convert(data: bytes, **kwargs: object) -> list[str]:
        folder = str(kwargs["output_folder"])
        seen_folders.append(folder)
        paths = []
        for index in (1, 2):
            path = Path(folder) / f"page-{index}.png"
            path.write_bytes(b"png-bytes")
            paths.append(str(path))
        return paths

    client = MagicMock()
    first, second = MagicMock(), MagicMock()
    first.error.message = ""
    first.full_text_annotation.text = "Hotel Alpina\n220.00\n"
    second.error.message = ""
    second.full_text_annotation.text = ""
    client.document_text_detection.side_effect = [first, second]

    service = GoogleVisionService(client=client, max_pages=2, dpi=200)
    with patch("receipt_ingest.extraction.vision.convert_from_bytes", side_effect=fake_convert) as convert:
        text = service.recognize_document(b"%PDF")

    assert text == "Hotel Alpina\n220.00"
    assert client.document_text_detection.call_count == 2
    assert convert.call_args.kwargs["last_page"] == 2
    assert convert.call_args.kwargs["dpi"] == 200
    assert not os.path.exists(seen_folders[0])


def test_vision_error_cleans_up_and_raises() -> None:
    seen_folders: list[str] = []

    def fake_convert(data: bytes, **kwargs: object) -> list[str]:
        folder = str(kwargs["output_folder"])
        seen_folders.append(folder)
        path = Path(folder) / "page-1.png"
        path.write_bytes(b"png-bytes")
        return [str(path)]

    client = MagicMock()
    response = MagicMock()
    response.error.message = "PERMISSION_DENIED"
    client.document_text_detection.return_value = response

    service = GoogleVisionService(client=client)
    with patch("receipt_ingest.extraction.vision.convert_from_bytes", side_effect=fake_convert):
        with pytest.raises(RuntimeError, match="PERMISSION_DENIED"):
            service.recognize_document(b"%PDF")

    assert not os.path.exists(seen_folders[0])
