"""Vector math helpers used for ranking stored rows."""

from typing import Any, List, NamedTuple, Sequence, Tuple

import numpy as np

from table_memory.services.errors import DimensionMismatchError, InvalidArgumentError


class RankedCandidate(NamedTuple):
    """A candidate together with its similarity to the query."""

    score: float
    payload: Any


def _as_array(vector: Sequence[float]) -> np.ndarray:
    return np.asarray(vector, dtype=np.float64)


def _check_dimensions(vec_a: np.ndarray, vec_b: np.ndarray) -> None:
    if vec_a.shape != vec_b.shape:
        raise DimensionMismatchError(
            f"Vector dimensions do not match: {vec_a.shape[0]} != {vec_b.shape[0]}"
        )


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    :param vec_a: first vector
    :param vec_b: second vector
    :returns: similarity in [-1, 1], 0 for empty or zero-norm input
    :raises DimensionMismatchError: if the lengths differ
    """
    a = _as_array(vec_a)
    b = _as_array(vec_b)
    _check_dimensions(a, b)

    if a.size == 0:
        return 0.0

    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0:
        return 0.0

    return float(np.dot(a, b) / denominator)


def euclidean_distance(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Euclidean distance of two vectors.

    :raises DimensionMismatchError: if the lengths differ
    """
    a = _as_array(vec_a)
    b = _as_array(vec_b)
    _check_dimensions(a, b)

    return float(np.sqrt(np.sum((a - b) ** 2)))


def normalize(vector: Sequence[float]) -> List[float]:
    """Scale to unit norm; a zero vector stays all zeros."""
    v = _as_array(vector)
    norm = np.linalg.norm(v)

    if norm == 0:
        return [0.0] * v.size

    return (v / norm).tolist()


def average_vectors(vectors: Sequence[Sequence[float]]) -> List[float]:
    """Elementwise mean, empty for empty input."""
    if not vectors:
        return []

    first = _as_array(vectors[0])
    stacked = []
    for vector in vectors:
        v = _as_array(vector)
        _check_dimensions(first, v)
        stacked.append(v)

    return np.mean(np.stack(stacked), axis=0).tolist()


def quantize_vector(vector: Sequence[float], bits: int = 16) -> List[float]:
    """
    Reduce the precision of a vector to ``bits`` signed levels.

    Values are rescaled by the largest absolute component, rounded, and
    scaled back, so the result stays in the original value range.

    :param vector: input vector
    :param bits: 8 or 16
    :returns: quantized vector
    :raises InvalidArgumentError: for any other bit width
    """
    if bits not in (8, 16):
        raise InvalidArgumentError("Only 8 or 16 bit quantization is supported")

    v = _as_array(vector)
    if v.size == 0:
        return []

    max_abs = np.max(np.abs(v))
    if max_abs == 0:
        return v.tolist()

    scale = (2 ** (bits - 1) - 1) / max_abs
    return (np.round(v * scale) / scale).tolist()


def calculate_sparsity(vector: Sequence[float], threshold: float = 0.01) -> float:
    """Fraction of components whose absolute value is below ``threshold``."""
    v = _as_array(vector)
    if v.size == 0:
        return 0.0

    return float(np.count_nonzero(np.abs(v) < threshold) / v.size)


def rank_by_similarity(
    query_vector: Sequence[float],
    candidates: Sequence[Tuple[Sequence[float], Any]],
    top_k: int = 10,
) -> List[RankedCandidate]:
    """
    Rank candidates by cosine similarity to the query.

    Ordering is by descending score; equal scores keep the order of
    ``candidates``.

    :param query_vector: query embedding
    :param candidates: ``(vector, payload)`` pairs
    :param top_k: maximum number of results
    :returns: at most ``top_k`` ranked candidates
    :raises DimensionMismatchError: if any candidate has a different dimension
    """
    if top_k <= 0 or not candidates:
        return []

    scores = np.array(
        [cosine_similarity(query_vector, vector) for vector, _ in candidates],
        dtype=np.float64,
    )
    order = np.argsort(-scores, kind="stable")[:top_k]

    return [
        RankedCandidate(score=float(scores[i]), payload=candidates[i][1]) for i in order
    ]

