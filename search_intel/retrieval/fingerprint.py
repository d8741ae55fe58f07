"""Fixed-length text fingerprints for cache similarity matching."""

import hashlib
from typing import Protocol

import numpy as np

from search_intel.retrieval.entity_extractor import STOP_WORDS, tokenize

# Surface variants that should land in the same dimension
CANONICAL_TERMS: dict[str, str] = {
    "top": "best",
    "recommended": "best",
    "greatest": "best",
    "neighbourhood": "neighborhood",
    "neighbourhoods": "neighborhoods",
    "versus": "vs",
    "cheapest": "cheap",
    "affordable": "cheap",
    "jobs": "job",
    "careers": "career",
    "apartments": "apartment",
    "homes": "home",
}


class TextEmbedder(Protocol):
    """Maps text to comparable vectors of a fixed length."""

    @property
    def dimensions(self) -> int: ...

    def embed(self, text: str) -> np.ndarray: ...

    def embed_terms(self, terms: list[str]) -> np.ndarray: ...


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity in [0, 1] for non-negative vectors; 0 for zero or mismatched vectors."""
    if a.shape != b.shape:
        return 0.0
    magnitude = float(np.linalg.norm(a) * np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0
    return max(0.0, min(1.0, float(np.dot(a, b)) / magnitude))


class HashingEmbedder:
    """Hashed bag-of-words embedding.

    Each token is added to the dimension selected by its md5 digest, weighted
    by its position so that earlier words count more. Vectors are
    L2-normalized. md5 keeps dimension choice stable across processes.
    """

    def __init__(self, dimensions: int = 64):
        if dimensions < 1:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> np.ndarray:
        """Fingerprint free text, weighting token i by 1/(i+1)."""
        tokens = self._normalize(tokenize(text))
        vector = np.zeros(self._dimensions, dtype=np.float64)
        for index, token in enumerate(tokens):
            vector[self._dimension(token)] += 1.0 / (index + 1)
        return self._l2_normalize(vector)

    def embed_terms(self, terms: list[str]) -> np.ndarray:
        """Fingerprint a term list, weighting term i by 1/sqrt(i+1)."""
        vector = np.zeros(self._dimensions, dtype=np.float64)
        for index, term in enumerate(terms):
            canonical = " ".join(self._normalize(tokenize(term)))
            if not canonical:
                continue
            vector[self._dimension(canonical)] += 1.0 / np.sqrt(index + 1)
        return self._l2_normalize(vector)

    def _normalize(self, tokens: list[str]) -> list[str]:
        return [CANONICAL_TERMS.get(t, t) for t in tokens if t not in STOP_WORDS]

    def _dimension(self, token: str) -> int:
        digest = hashlib.md5(token.encode("utf-8")).hexdigest()
        return int(digest, 16) % self._dimensions

    @staticmethod
    def _l2_normalize(vector: np.ndarray) -> np.ndarray:
        norm = np.linalg.norm(vector)
        return vector / norm if norm > 0 else vector
