"""OCR boundary: tesseract recognition and PDF page rendering.

The rest of the pipeline only sees :class:`OCRResult`; the tesseract and
PyMuPDF calls stay in this module.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Iterator, List

import fitz  # PyMuPDF
import pytesseract
from PIL import Image, UnidentifiedImageError

LOGGER = logging.getLogger(__name__)


class OCRUnavailableError(RuntimeError):
    """Raised when the tesseract binary cannot be executed."""


@dataclass(frozen=True, slots=True)
class OCRResult:
    text: str
    confidence: float
    pages: int = 1


def _mean_confidence(values: List[float]) -> float:
    scored = [value for value in values if value >= 0]
    if not scored:
        return 0.0
    return sum(scored) / len(scored)


class OCREngine:
    """Run tesseract over images and rendered PDF pages."""

    def __init__(self, language: str = "eng", dpi: int = 200, max_pages: int = 20) -> None:
        self.language = language
        self.dpi = dpi
        self.max_pages = max_pages

    def recognize_image(self, image: Image.Image) -> OCRResult:
        """Return the recognised text and mean word confidence for one image."""

        if image.mode not in {"RGB", "L"}:
            image = image.convert("RGB")
        try:
            data = pytesseract.image_to_data(
                image, lang=self.language, output_type=pytesseract.Output.DICT
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise OCRUnavailableError("tesseract is not installed") from exc

        words: List[str] = []
        confidences: List[float] = []
        line_key = None
        for index, word in enumerate(data.get("text", [])):
            key = (data["block_num"][index], data["par_num"][index], data["line_num"][index])
            if line_key is not None and key != line_key and words and words[-1] != "\n":
                words.append("\n")
            line_key = key
            token = (word or "").strip()
            if not token:
                continue
            words.append(token)
            confidences.append(float(data["conf"][index]))

        text = " ".join(words).replace(" \n ", "\n").strip()
        return OCRResult(text=text, confidence=_mean_confidence(confidences))

    @staticmethod
    def is_image(data: bytes) -> bool:
        """Return ``True`` when Pillow can identify ``data`` as an image."""

        try:
            with Image.open(io.BytesIO(data)) as image:
                image.verify()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
            return False
        return True

    def recognize_bytes(self, data: bytes) -> OCRResult:
        """Open arbitrary image bytes with Pillow and OCR every frame."""

        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError(f"bytes are not a readable image: {exc}") from exc

        frames = getattr(image, "n_frames", 1) or 1
        results: List[OCRResult] = []
        for frame in range(min(frames, self.max_pages)):
            image.seek(frame)
            results.append(self.recognize_image(image.copy()))
        return _combine(results)

    def render_pdf_pages(self, data: bytes) -> Iterator[Image.Image]:
        """Yield up to ``max_pages`` rasterised pages of a PDF."""

        with fitz.open(stream=data, filetype="pdf") as document:
            for page_index, page in enumerate(document):
                if page_index >= self.max_pages:
                    LOGGER.info("OCR page limit %s reached; skipping remaining pages", self.max_pages)
                    break
                pixmap = page.get_pixmap(dpi=self.dpi)
                yield Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)

    def recognize_pdf(self, data: bytes) -> OCRResult:
        results = [self.recognize_image(image) for image in self.render_pdf_pages(data)]
        return _combine(results)


def _combine(results: List[OCRResult]) -> OCRResult:
    if not results:
        return OCRResult(text="", confidence=0.0, pages=0)
    text = "\n\n".join(result.text for result in results if result.text)
    weighted = [result for result in results if result.text]
    if weighted:
        total = sum(len(result.text) for result in weighted)
        confidence = sum(result.confidence * len(result.text) for result in weighted) / total
    else:
        confidence = 0.0
    return OCRResult(text=text, confidence=confidence, pages=len(results))


__all__ = ["OCREngine", "OCRResult", "OCRUnavailableError"]
