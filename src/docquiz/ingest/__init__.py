"""Document extraction, validation, chaptering and chunking."""
from .cascade import CascadeParser, ExtractionStrategy, ParseOutcome
from .chapters import ChapterSegmenter, segment_chapters, select_chapters
from .chunking import ChunkingConfig, TextChunker, questions_per_chunk
from .extractors import build_parser
from .format_detection import DocumentFormat, DocumentFormatDetector
from .models import Chapter, ChapterExtraction, ExtractedText, SourceDocument, TextChunk
from .pipeline import ExtractionPipeline
from .validation import ValidationMode, assess_content, validate_content

__all__ = [
    "CascadeParser",
    "Chapter",
    "ChapterExtraction",
    "ChapterSegmenter",
    "ChunkingConfig",
    "DocumentFormat",
    "DocumentFormatDetector",
    "ExtractedText",
    "ExtractionPipeline",
    "ExtractionStrategy",
    "ParseOutcome",
    "SourceDocument",
    "TextChunk",
    "TextChunker",
    "ValidationMode",
    "assess_content",
    "build_parser",
    "questions_per_chunk",
    "segment_chapters",
    "select_chapters",
    "validate_content",
]
