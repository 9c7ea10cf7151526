"""Shared fixtures: in-memory documents, model replies and settings."""
from __future__ import annotations

import dataclasses
import json
import zlib
from typing import Callable, List, Optional, Sequence

import pytest

from docquiz.config import Settings, get_settings
from docquiz.ingest.ocr import OCREngine, OCRResult

PARAGRAPHS: List[str] = [
    "Photosynthesis is the process by which green plants convert light energy into chemical energy. "
    "Chlorophyll inside the chloroplasts absorbs sunlight and uses it to split water molecules.",
    "The light-dependent reactions take place in the thylakoid membranes. They produce oxygen as a "
    "by-product and store energy in molecules of ATP and NADPH for later use by the cell.",
    "During the Calvin cycle, carbon dioxide from the atmosphere is fixed into sugars. The enzyme "
    "rubisco attaches carbon dioxide to a five-carbon sugar called ribulose bisphosphate.",
    "Cellular respiration releases the energy stored in glucose. Mitochondria break glucose down in "
    "several stages, producing carbon dioxide, water and a large amount of usable energy.",
    "Glycolysis happens in the cytoplasm and splits one glucose molecule into two molecules of "
    "pyruvate. It does not require oxygen and yields a small net gain of two ATP molecules.",
    "The Krebs cycle runs inside the mitochondrial matrix. Each turn of the cycle releases carbon "
    "dioxide and transfers high-energy electrons to carrier molecules such as NADH.",
    "The electron transport chain pumps protons across the inner mitochondrial membrane. The "
    "resulting gradient drives ATP synthase, which produces most of the energy a cell obtains.",
    "Fermentation allows some organisms to regenerate NAD+ without oxygen. Yeast produces ethanol, "
    "while muscle cells produce lactic acid when oxygen supply cannot keep up with demand.",
    "Ecosystems depend on producers that capture solar energy. Herbivores eat producers, and "
    "carnivores eat herbivores, so energy flows through food chains from one level to the next.",
    "Only about ten percent of the energy at one trophic level reaches the next. This explains why "
    "food chains rarely have more than four or five levels in most natural habitats.",
    "Decomposers such as fungi and bacteria recycle nutrients by breaking down dead organisms. "
    "Without them, nitrogen and phosphorus would remain locked inside fallen leaves and remains.",
    "The nitrogen cycle converts atmospheric nitrogen into forms plants can absorb. Bacteria in root "
    "nodules of legumes fix nitrogen gas into ammonia that is later turned into nitrates.",
]


@pytest.fixture()
def educational_text() -> str:
    """About 2,300 characters of prose split into paragraphs."""

    return "\n\n".join(PARAGRAPHS)


@pytest.fixture()
def paragraphs() -> List[str]:
    return list(PARAGRAPHS)


@pytest.fixture()
def short_educational_text() -> str:
    return "\n\n".join(PARAGRAPHS[:2])


def _escape_pdf_literal(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(lines: Sequence[str], *, compress: bool = False) -> bytes:
    """Return a one-page PDF whose content stream shows ``lines`` with Helvetica."""

    operations = ["BT", "/F1 10 Tf", "12 TL", "40 770 Td"]
    for line in lines:
        operations.append(f"({_escape_pdf_literal(line)}) Tj")
        operations.append("T*")
    operations.append("ET")
    content = "\n".join(operations).encode("latin-1")

    if compress:
        content = zlib.compress(content)
        stream_dict = f"<< /Length {len(content)} /Filter /FlateDecode >>".encode()
    else:
        stream_dict = f"<< /Length {len(content)} >>".encode()

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        stream_dict + b"\nstream\n" + content + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    output = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(output))
        output += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_offset = len(output)
    output += f"xref\n0 {len(objects) + 1}\n".encode()
    output += b"0000000000 65535 f \n"
    for offset in offsets:
        output += f"{offset:010d} 00000 n \n".encode()
    output += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n"
    ).encode()
    return bytes(output)


def _wrap(text: str, width: int = 90) -> List[str]:
    lines: List[str] = []
    current = ""
    for word in text.split():
        if current and len(current) + len(word) + 1 > width:
            lines.append(current)
            current = word
        else:
            current = f"{current} {word}".strip()
    if current:
        lines.append(current)
    return lines


@pytest.fixture()
def pdf_builder() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture()
def text_pdf(short_educational_text: str) -> bytes:
    lines: List[str] = []
    for paragraph in short_educational_text.split("\n\n"):
        lines.extend(_wrap(paragraph))
    return build_pdf(lines)


@pytest.fixture()
def lesson_pdf(educational_text: str) -> bytes:
    lines: List[str] = []
    for paragraph in educational_text.split("\n\n"):
        lines.extend(_wrap(paragraph))
    return build_pdf(lines)


def make_questions(count: int, prefix: str = "topic") -> List[dict]:
    return [
        {
            "question": f"Which statement about {prefix} number {index} is correct?",
            "options": [
                f"{prefix} {index} uses sunlight",
                f"{prefix} {index} needs darkness",
                f"{prefix} {index} happens underground",
                f"{prefix} {index} never occurs",
            ],
            "correct": f"{prefix} {index} uses sunlight",
        }
        for index in range(1, count + 1)
    ]


@pytest.fixture()
def question_reply() -> Callable[..., str]:
    """Build a JSON model reply with ``count`` valid, distinct questions."""

    def _reply(count: int, prefix: str = "topic", fenced: bool = False) -> str:
        body = json.dumps(make_questions(count, prefix))
        return f"```json\n{body}\n```" if fenced else body

    return _reply


@pytest.fixture()
def settings() -> Settings:
    return dataclasses.replace(
        get_settings(),
        llm_api_endpoint="https://llm.example.test/v1/chat/completions",
        llm_api_key="test-key",
        chunk_chars=1500,
        overlap_chars=200,
        max_consecutive_failures=5,
        quality_rejection_fatal=True,
    )


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeOCREngine(OCREngine):
    """OCR engine returning a canned result without calling tesseract."""

    def __init__(self, result: Optional[OCRResult] = None, *, image: bool = False) -> None:
        super().__init__()
        self.result = result or OCRResult(text="", confidence=0.0)
        self.image = image
        self.calls = 0

    def recognize_pdf(self, data: bytes) -> OCRResult:
        self.calls += 1
        return self.result

    def recognize_bytes(self, data: bytes) -> OCRResult:
        self.calls += 1
        return self.result

    def is_image(self, data: bytes) -> bool:
        return self.image


@pytest.fixture()
def fake_ocr() -> Callable[..., FakeOCREngine]:
    def _build(text: str = "", confidence: float = 0.0, *, image: bool = False) -> FakeOCREngine:
        return FakeOCREngine(OCRResult(text=text, confidence=confidence), image=image)

    return _build
