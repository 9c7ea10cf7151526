import dataclasses
import itertools
import json
import logging
import re

import pytest

from docquiz.errors import GenerationFailure, InvalidContent, QualityRejected
from docquiz.generation.models import GenerationState
from docquiz.generation.orchestrator import QuizGenerator, build_generator
from docquiz.ingest.chunking import ChunkingConfig, TextChunker
from docquiz.llm.adapter import LLMConnectionError, LLMRateLimitError, MockLLMAdapter

_COUNT_RE = re.compile(r"Create (\d+) high-quality")


@pytest.fixture()
def responder(question_reply):
    """Reply with exactly the requested number of questions, unique per call."""

    counter = itertools.count(1)

    def _respond(prompt: str) -> str:
        count = int(_COUNT_RE.search(prompt).group(1))
        return question_reply(count, prefix=f"call{next(counter)}")

    return _respond


@pytest.fixture()
def long_text(educational_text: str) -> str:
    return "\n\n".join([educational_text] * 5)


def _metadata_reply() -> str:
    return json.dumps(
        [
            {
                "question": f"Which PDF producer software version made file {index}?",
                "options": ["Adobe 9", "Word 10", "Pages 11", "Scanner 12"],
                "correct": "Adobe 9",
            }
            for index in range(3)
        ]
    )


def test_generates_requested_number_of_questions(educational_text: str, responder) -> None:
    llm = MockLLMAdapter(responder=responder)

    result = QuizGenerator(llm).generate(educational_text, 10, "easy")

    assert result.state is GenerationState.SUCCESS
    assert result.achieved == 10
    assert result.requested == 10
    assert result.chunk_count == 2
    for question in result.questions:
        assert len(question.options) == 4
        assert len({option.casefold() for option in question.options}) == 4
        assert question.correct_answer in question.options
    assert "DIFFICULTY: easy" in llm.prompts[0]
    assert "Create 5 high-quality" in llm.prompts[0]


def test_stops_once_enough_questions_are_collected(long_text: str, question_reply) -> None:
    llm = MockLLMAdapter(default=question_reply(8))

    result = QuizGenerator(llm).generate(long_text, 5)

    assert result.achieved == 5
    assert result.state is GenerationState.SUCCESS
    assert llm.calls == 1


def test_consecutive_rate_limits_abort_generation(long_text: str) -> None:
    llm = MockLLMAdapter([LLMRateLimitError("slow down")] * 5)

    with pytest.raises(GenerationFailure):
        QuizGenerator(llm).generate(long_text, 10)

    assert llm.calls == 5


def test_abort_after_partial_success_keeps_questions(long_text: str, question_reply) -> None:
    llm = MockLLMAdapter([question_reply(2)] + [LLMConnectionError("offline")] * 5)

    result = QuizGenerator(llm).generate(long_text, 20)

    assert result.state is GenerationState.ABORTED
    assert result.achieved == 2
    assert result.failed_chunks == 5
    assert llm.calls == 6


def test_success_resets_failure_counter(long_text: str, question_reply) -> None:
    script = []
    for prefix in ("alpha", "beta", "gamma"):
        script.extend([LLMConnectionError("flaky"), question_reply(1, prefix=prefix)])
    llm = MockLLMAdapter(script)

    result = QuizGenerator(llm, max_consecutive_failures=2).generate(long_text, 3)

    assert result.state is GenerationState.SUCCESS
    assert result.achieved == 3
    assert result.failed_chunks == 3


def test_empty_batches_count_as_failures(long_text: str) -> None:
    llm = MockLLMAdapter(default="Sorry, I cannot help with that.")

    with pytest.raises(GenerationFailure):
        QuizGenerator(llm, max_consecutive_failures=3).generate(long_text, 4)

    assert llm.calls == 3


def test_duplicate_questions_are_merged(educational_text: str, question_reply) -> None:
    llm = MockLLMAdapter(default=question_reply(3))

    result = QuizGenerator(llm).generate(educational_text, 6)

    assert result.achieved == 3
    assert result.state is GenerationState.PARTIAL
    assert len({question.id for question in result.questions}) == 3


def test_model_rejection_is_fatal(educational_text: str) -> None:
    llm = MockLLMAdapter(["INVALID_CONTENT"])

    with pytest.raises(InvalidContent):
        QuizGenerator(llm).generate(educational_text, 5)


def test_quality_rejection_is_fatal_by_default(educational_text: str) -> None:
    llm = MockLLMAdapter([_metadata_reply()])

    with pytest.raises(QualityRejected):
        QuizGenerator(llm).generate(educational_text, 3)


def test_quality_rejection_can_be_skipped(educational_text: str, question_reply) -> None:
    llm = MockLLMAdapter([_metadata_reply(), question_reply(3)])

    result = QuizGenerator(llm, quality_rejection_fatal=False).generate(educational_text, 3)

    assert result.achieved == 3
    assert result.failed_chunks == 1


def test_unreadable_chunk_stops_before_calling_the_model(question_reply) -> None:
    llm = MockLLMAdapter(default=question_reply(3))

    with pytest.raises(InvalidContent):
        QuizGenerator(llm).generate(" ".join(["#$%^&*()_+{}|:<>?~"] * 20), 3)

    assert llm.calls == 0


def test_generation_is_deterministic(educational_text: str, question_reply) -> None:
    first = QuizGenerator(MockLLMAdapter(default=question_reply(5))).generate(educational_text, 5)
    second = QuizGenerator(MockLLMAdapter(default=question_reply(5))).generate(educational_text, 5)

    assert [question.to_dict() for question in first.questions] == [
        question.to_dict() for question in second.questions
    ]


def test_invalid_arguments(educational_text: str) -> None:
    generator = QuizGenerator(MockLLMAdapter())

    with pytest.raises(ValueError):
        generator.generate(educational_text, 0)
    with pytest.raises(GenerationFailure):
        generator.generate("   ", 3)
    with pytest.raises(ValueError):
        QuizGenerator(MockLLMAdapter(), max_consecutive_failures=0)


def test_build_generator_uses_settings(settings) -> None:
    tuned = dataclasses.replace(
        settings, chunk_chars=300, overlap_chars=500, max_consecutive_failures=2, quality_rejection_fatal=False
    )

    generator = build_generator(MockLLMAdapter(), tuned)

    assert generator.chunker.config == ChunkingConfig(chunk_chars=300, overlap_chars=299)
    assert generator.max_consecutive_failures == 2
    assert not generator.quality_rejection_fatal


def test_custom_chunker_is_used(educational_text: str, responder) -> None:
    llm = MockLLMAdapter(responder=responder)
    chunker = TextChunker(ChunkingConfig(chunk_chars=600, overlap_chars=50))

    result = QuizGenerator(llm, chunker).generate(educational_text, 4)

    assert result.chunk_count == len(chunker.chunk(educational_text))
    assert result.achieved == 4


def _state_changes(caplog) -> list:
    return [
        (record.msg["details"]["from"], record.msg["details"]["to"])
        for record in caplog.records
        if isinstance(record.msg, dict) and record.msg.get("step") == "generation.state"
    ]


def test_state_moves_from_pending_through_the_chunk_loop(educational_text: str, responder, caplog) -> None:
    caplog.set_level(logging.INFO, logger="docquiz")

    QuizGenerator(MockLLMAdapter(responder=responder)).generate(educational_text, 10)

    assert _state_changes(caplog) == [("pending", "per_chunk_loop"), ("per_chunk_loop", "success")]


def test_aborted_run_ends_in_aborted_state(long_text: str, question_reply, caplog) -> None:
    caplog.set_level(logging.INFO, logger="docquiz")
    llm = MockLLMAdapter([question_reply(2)] + [LLMConnectionError("offline")] * 5)

    QuizGenerator(llm).generate(long_text, 20)

    assert _state_changes(caplog) == [("pending", "per_chunk_loop"), ("per_chunk_loop", "aborted")]
