"""Test SimilarityIndex — deterministic projection and nearest-neighbour search."""

import numpy as np
import pytest

from src.memory.models import VectorEntry
from src.memory.vectors import (
    SimilarityIndex,
    cosine_similarity,
    hash_token,
    project,
    tokenize,
)


class TestTokenize:
    """Test tokenization rules."""

    def test_drops_short_words_and_punctuation(self) -> None:
        """Test words of two characters or fewer and punctuation are dropped."""
        assert tokenize("Hello, World! an of the big-cat") == [
            "hello",
            "world",
            "the",
            "big",
            "cat",
        ]

    def test_empty_text(self) -> None:
        """Test empty text yields no tokens."""
        assert tokenize("") == []
        assert tokenize("  ?! ") == []


class TestHashToken:
    """Test the djb2 token hash."""

    def test_known_value(self) -> None:
        """Test hash matches the classic djb2 value for a short string."""
        assert hash_token("abc") == 193485963

    def test_is_deterministic(self) -> None:
        """Test hashing the same token twice gives the same value."""
        assert hash_token("gravity") == hash_token("gravity")

    def test_long_token_is_non_negative(self) -> None:
        """Test long tokens stay non-negative after 32-bit wrapping."""
        assert hash_token("x" * 64) >= 0
        assert hash_token("supercalifragilisticexpialidocious") >= 0


class TestProject:
    """Test text projection."""

    def test_same_text_same_vector(self) -> None:
        """Test projecting the same text twice yields identical vectors."""
        a = project("gravity pulls objects together")
        b = project("gravity pulls objects together")
        assert np.array_equal(a, b)

    def test_vector_is_unit_length(self) -> None:
        """Test non-empty projections are L2-normalised."""
        vector = project("photosynthesis converts light into sugar")
        assert np.linalg.norm(vector) == pytest.approx(1.0)

    def test_dimension(self) -> None:
        """Test projection honours the requested dimension."""
        assert project("hello world", dimension=64).shape == (64,)
        assert project("hello world").shape == (384,)

    def test_empty_text_is_zero_vector(self) -> None:
        """Test text with no usable tokens projects to the zero vector."""
        assert not project("").any()
        assert not project("a an of to").any()

    def test_self_similarity_is_one(self) -> None:
        """Test a projection is maximally similar to itself."""
        for text in ("gravity", "the quick brown fox", "neural network layers"):
            vector = project(text)
            assert cosine_similarity(vector, vector) == pytest.approx(1.0)


class TestCosineSimilarity:
    """Test cosine similarity edge cases."""

    def test_mismatched_dimensions(self) -> None:
        """Test vectors of different length have similarity zero."""
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0

    def test_zero_vectors(self) -> None:
        """Test zero vectors do not divide by zero."""
        assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0

    def test_orthogonal(self) -> None:
        """Test orthogonal vectors have similarity zero."""
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0


class TestSimilarityIndex:
    """Test SimilarityIndex storage and search."""

    @pytest.fixture
    def index(self) -> SimilarityIndex:
        index = SimilarityIndex()
        index.insert("g", "gravity: the force that pulls objects together", {"concept": "gravity"})
        index.insert("p", "photosynthesis: plants turn light into sugar", {"concept": "photosynthesis"})
        index.insert("d", "database: organized collection of stored data", {"concept": "database"})
        return index

    def test_search_empty_index(self) -> None:
        """Test searching an empty index returns an empty list."""
        assert SimilarityIndex().search("anything", 5) == []

    def test_search_respects_k(self, index: SimilarityIndex) -> None:
        """Test search never returns more than k results."""
        assert len(index.search("gravity", 2)) == 2
        assert len(index.search("gravity", 10)) == 3
        assert index.search("gravity", 0) == []

    def test_search_orders_descending(self, index: SimilarityIndex) -> None:
        """Test results come back in descending similarity."""
        hits = index.search("gravity force pulls objects", 3)
        scores = [h.similarity for h in hits]
        assert scores == sorted(scores, reverse=True)
        assert hits[0].id == "g"

    def test_similarity_bounds(self, index: SimilarityIndex) -> None:
        """Test every reported similarity lies within [0, 1]."""
        for query in ("gravity", "plants light", "zzz qqq", "", "data stored"):
            for hit in index.search(query, 3):
                assert 0.0 <= hit.similarity <= 1.0 + 1e-9

    def test_exact_text_scores_one(self, index: SimilarityIndex) -> None:
        """Test querying with stored text finds that entry at similarity 1."""
        hit = index.search("database: organized collection of stored data", 1)[0]
        assert hit.id == "d"
        assert hit.similarity == pytest.approx(1.0)
        assert hit.metadata == {"concept": "database"}

    def test_ties_keep_insertion_order(self) -> None:
        """Test equal scores are returned in insertion order."""
        index = SimilarityIndex()
        index.insert("first", "alpha beta gamma")
        index.insert("second", "alpha beta gamma")
        index.insert("third", "alpha beta gamma")
        assert [h.id for h in index.search("alpha beta gamma", 3)] == [
            "first",
            "second",
            "third",
        ]

    def test_insert_same_id_overwrites(self) -> None:
        """Test inserting an existing id replaces the stored entry."""
        index = SimilarityIndex()
        index.insert("x", "old text here")
        index.insert("x", "new text here", {"v": 2})
        assert len(index) == 1
        assert index.get("x").text == "new text here"
        assert index.get("x").metadata == {"v": 2}

    def test_load_foreign_dimension_scores_zero(self) -> None:
        """Test vectors of another dimension load but never match."""
        index = SimilarityIndex(dimension=384)
        index.load([VectorEntry(id="odd", vector=[1.0, 0.0], text="gravity")])
        hits = index.search("gravity", 1)
        assert len(hits) == 1
        assert hits[0].similarity == 0.0
