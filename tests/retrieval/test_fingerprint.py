"""Tests for text fingerprints and cosine similarity."""

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from search_intel.retrieval.fingerprint import HashingEmbedder, cosine_similarity


class TestHashingEmbedder:
    """Test fingerprint generation."""

    def test_fixed_dimensions(self):
        embedder = HashingEmbedder(dimensions=32)

        assert embedder.dimensions == 32
        assert embedder.embed("parks in Denver").shape == (32,)
        assert embedder.embed_terms(["parks", "denver"]).shape == (32,)

    def test_vectors_are_unit_length(self):
        vector = HashingEmbedder().embed("best neighborhoods in Austin")
        assert np.linalg.norm(vector) == pytest.approx(1.0)

    def test_stop_words_only_gives_zero_vector(self):
        vector = HashingEmbedder().embed("what is the")
        assert not vector.any()

    def test_empty_terms_give_zero_vector(self):
        assert not HashingEmbedder().embed_terms([]).any()
        assert not HashingEmbedder().embed_terms(["", "the"]).any()

    def test_canonical_variants_share_fingerprint(self):
        """'top' and 'best' land in the same dimension."""
        embedder = HashingEmbedder()

        a = embedder.embed("best neighborhoods in Austin")
        b = embedder.embed("top neighborhoods Austin")

        assert cosine_similarity(a, b) == pytest.approx(1.0)

    def test_earlier_tokens_weigh_more(self):
        embedder = HashingEmbedder(dimensions=1024)

        vector = embedder.embed("parks museums")

        assert vector[embedder._dimension("parks")] > vector[embedder._dimension("museums")]

    def test_invalid_dimensions(self):
        with pytest.raises(ValueError, match="dimensions must be positive"):
            HashingEmbedder(dimensions=0)


class TestCosineSimilarity:
    """Test cosine similarity edge cases."""

    def test_identical_vectors(self):
        v = np.array([1.0, 2.0, 0.0])
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 1.0])) == 0.0

    def test_zero_vector(self):
        assert cosine_similarity(np.zeros(3), np.array([1.0, 0.0, 0.0])) == 0.0

    def test_mismatched_shapes(self):
        assert cosine_similarity(np.ones(3), np.ones(4)) == 0.0


class TestFingerprintProperties:
    """Property-based tests for fingerprints."""

    @settings(deadline=None, max_examples=200)
    @given(text=st.text(max_size=200))
    def test_property_fingerprint_is_deterministic_and_normalized(self, text):
        """Property: same text gives the same vector, of norm 1 or 0."""
        first = HashingEmbedder().embed(text)
        second = HashingEmbedder().embed(text)

        assert np.array_equal(first, second)
        norm = float(np.linalg.norm(first))
        assert norm == pytest.approx(1.0) or norm == 0.0

    @settings(deadline=None, max_examples=200)
    @given(a=st.text(max_size=100), b=st.text(max_size=100))
    def test_property_similarity_bounded_and_symmetric(self, a, b):
        """Property: similarity is in [0, 1] and symmetric."""
        embedder = HashingEmbedder()
        va, vb = embedder.embed(a), embedder.embed(b)

        similarity = cosine_similarity(va, vb)

        assert 0.0 <= similarity <= 1.0
        assert similarity == pytest.approx(cosine_similarity(vb, va))
