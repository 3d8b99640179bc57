"""
tests/unit/test_embedding_generator.py
──────────────────────────────────────────────────────────────────────────────
Unit tests for EmbeddingGenerator: composite text, input validation,
dimension checking and provider-error classification.
"""
from __future__ import annotations

import pytest

from mathtutor.domain.exceptions import FailureKind, ProviderError, TutorError
from mathtutor.services.embedding_generator import (
    EmbeddingGenerator,
    combine_question_answer,
)
from mathtutor.tests.conftest import MockEmbeddingAdapter, fake_vector


def test_combined_text_format():
    assert combine_question_answer("2+2?", "4") == "Question: 2+2?\nAnswer: 4"


class TestGenerate:
    def test_returns_provider_vector(self, generator, mock_embedder):
        assert generator.generate("hello") == fake_vector("hello")
        assert mock_embedder.calls == ["hello"]

    def test_provider_error_is_classified(self, generator, mock_embedder):
        mock_embedder.fail_on("hello", ProviderError("slow", status=429))
        with pytest.raises(TutorError) as exc_info:
            generator.generate("hello")
        assert exc_info.value.kind is FailureKind.RATE_LIMITED
        assert isinstance(exc_info.value.__cause__, ProviderError)

    def test_model_name_delegates(self, generator):
        assert generator.model_name == "mock-embedding"


class TestGenerateCombined:
    def test_embeds_composite_text(self, generator, mock_embedder):
        vec = generator.generate_combined("What is 1/2 of 8?", "4")
        assert mock_embedder.calls == ["Question: What is 1/2 of 8?\nAnswer: 4"]
        assert len(vec) == 8

    @pytest.mark.parametrize("question, answer, message", [
        ("", "4", "Question is required"),
        ("   ", "4", "Question is required"),
        ("q", "", "Answer is required"),
        ("q", "\t\n", "Answer is required"),
    ])
    def test_blank_input_rejected_without_provider_call(
        self, generator, mock_embedder, question, answer, message
    ):
        with pytest.raises(TutorError, match=message) as exc_info:
            generator.generate_combined(question, answer)
        assert exc_info.value.kind is FailureKind.VALIDATION_FAILED
        assert mock_embedder.calls == []

    def test_wrong_dimensions_rejected(self, settings):
        gen = EmbeddingGenerator(MockEmbeddingAdapter(dim=4), settings)
        with pytest.raises(TutorError, match="8 dimensions, got 4") as exc_info:
            gen.generate_combined("q", "a")
        assert exc_info.value.kind is FailureKind.VALIDATION_FAILED

    def test_quota_error_not_retryable(self, generator, mock_embedder):
        mock_embedder.fail_on(
            "Question: q", ProviderError("quota", status=429, code="insufficient_quota")
        )
        with pytest.raises(TutorError) as exc_info:
            generator.generate_combined("q", "a")
        assert exc_info.value.kind is FailureKind.QUOTA_EXCEEDED
        assert not exc_info.value.retryable
