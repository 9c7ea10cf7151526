from __future__ import annotations

import io

import pytest
from PIL import Image

from docquiz.ingest import ocr as ocr_module
from docquiz.ingest.ocr import OCREngine, OCRUnavailableError


def _png(size=(40, 20)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, "white").save(buffer, format="PNG")
    return buffer.getvalue()


def _tesseract_data() -> dict:
    return {
        "text": ["", "Cells", "divide", "", "by", "mitosis"],
        "block_num": [1, 1, 1, 1, 1, 1],
        "par_num": [1, 1, 1, 1, 1, 1],
        "line_num": [0, 1, 1, 2, 2, 2],
        "conf": ["-1", "90", "80", "-1", "70", "60"],
    }


def test_recognize_image_joins_lines_and_averages_confidence(monkeypatch) -> None:
    seen = {}

    def fake_image_to_data(image, lang, output_type):
        seen["lang"] = lang
        return _tesseract_data()

    monkeypatch.setattr(ocr_module.pytesseract, "image_to_data", fake_image_to_data)

    result = OCREngine(language="deu").recognize_image(Image.new("RGBA", (10, 10)))

    assert result.text == "Cells divide\nby mitosis"
    assert result.confidence == pytest.approx(75.0)
    assert seen["lang"] == "deu"


def test_missing_tesseract_is_reported(monkeypatch) -> None:
    def missing(*args, **kwargs):
        raise ocr_module.pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(ocr_module.pytesseract, "image_to_data", missing)

    with pytest.raises(OCRUnavailableError):
        OCREngine().recognize_bytes(_png())


def test_is_image() -> None:
    assert OCREngine.is_image(_png())
    assert not OCREngine.is_image(b"plain words, not pixels")


def test_decompression_bomb_is_not_treated_as_an_image(monkeypatch) -> None:
    data = _png()
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    assert not OCREngine.is_image(data)


def test_recognize_bytes_rejects_non_images() -> None:
    with pytest.raises(ValueError):
        OCREngine().recognize_bytes(b"not an image at all")


def test_render_pdf_pages_respects_dpi_and_page_limit(pdf_builder) -> None:
    engine = OCREngine(dpi=72, max_pages=1)

    pages = list(engine.render_pdf_pages(pdf_builder(["A single line of text"])))

    assert len(pages) == 1
    assert pages[0].size == (612, 792)


def test_recognize_pdf_combines_pages(monkeypatch, pdf_builder) -> None:
    monkeypatch.setattr(
        ocr_module.pytesseract, "image_to_data", lambda image, lang, output_type: _tesseract_data()
    )

    result = OCREngine(dpi=72).recognize_pdf(pdf_builder(["page"]))

    assert result.pages == 1
    assert result.text == "Cells divide\nby mitosis"
