"""Tests for the validated embedding vector."""

import math

import pytest

from vitrina.errors import InvalidEmbeddingError
from vitrina.models import EmbeddingVector


class TestFromValues:
    def test_accepts_correct_dimension(self) -> None:
        vector = EmbeddingVector.from_values([0.1, 0.2, 0.3], dimension=3)
        assert vector.to_list() == [0.1, 0.2, 0.3]
        assert vector.dimension == 3

    def test_rejects_wrong_dimension(self) -> None:
        with pytest.raises(InvalidEmbeddingError):
            EmbeddingVector.from_values([0.1, 0.2], dimension=3)

    def test_rejects_nan(self) -> None:
        with pytest.raises(InvalidEmbeddingError):
            EmbeddingVector.from_values([0.1, math.nan, 0.3], dimension=3)

    def test_rejects_infinity(self) -> None:
        with pytest.raises(InvalidEmbeddingError):
            EmbeddingVector.from_values([0.1, math.inf, 0.3], dimension=3)

    def test_rejects_non_numeric(self) -> None:
        with pytest.raises(InvalidEmbeddingError):
            EmbeddingVector.from_values([0.1, "x", 0.3], dimension=3)

    def test_rejects_booleans(self) -> None:
        with pytest.raises(InvalidEmbeddingError):
            EmbeddingVector.from_values([True, False, True], dimension=3)

    def test_parses_pgvector_text(self) -> None:
        vector = EmbeddingVector.from_values("[1,2,3]", dimension=3)
        assert vector.to_list() == [1.0, 2.0, 3.0]

    def test_is_immutable(self) -> None:
        vector = EmbeddingVector.from_values([1, 2, 3], dimension=3)
        with pytest.raises(Exception):
            vector.values = (0.0, 0.0, 0.0)


class TestParse:
    def test_none_is_absent(self) -> None:
        assert EmbeddingVector.parse(None) is None

    def test_invalid_is_absent(self) -> None:
        assert EmbeddingVector.parse([1.0, 2.0], dimension=768) is None

    def test_garbage_text_is_absent(self) -> None:
        assert EmbeddingVector.parse("not a vector", dimension=3) is None

    def test_default_dimension_is_768(self) -> None:
        assert EmbeddingVector.parse([0.0] * 768) is not None
        assert EmbeddingVector.parse([0.0] * 1536) is None


def test_to_pgvector_literal() -> None:
    vector = EmbeddingVector.from_values([0.5, -1, 2], dimension=3)
    assert vector.to_pgvector() == "[0.5,-1.0,2.0]"
