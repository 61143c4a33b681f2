import pytest

from table_memory.services.errors import DimensionMismatchError, InvalidArgumentError
from table_memory.services.vector_db.vector_math import (
    average_vectors,
    calculate_sparsity,
    cosine_similarity,
    euclidean_distance,
    normalize,
    quantize_vector,
    rank_by_similarity,
)


class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([0.3, -1.2, 4.0], [0.3, -1.2, 4.0]) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_zero_vector_scores_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_empty_vectors_score_zero(self):
        assert cosine_similarity([], []) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_euclidean_distance():
    assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)
    assert euclidean_distance([1.5, 2.5], [1.5, 2.5]) == 0.0
    with pytest.raises(DimensionMismatchError):
        euclidean_distance([1.0], [1.0, 2.0])


def test_normalize():
    assert normalize([3.0, 4.0]) == pytest.approx([0.6, 0.8])
    assert normalize([0.0, 0.0, 0.0]) == [0.0, 0.0, 0.0]


def test_average_vectors():
    assert average_vectors([[1.0, 2.0], [3.0, 6.0]]) == pytest.approx([2.0, 4.0])
    assert average_vectors([]) == []
    with pytest.raises(DimensionMismatchError):
        average_vectors([[1.0, 2.0], [1.0]])


class TestQuantizeVector:
    def test_keeps_values_close(self):
        vector = [0.12345, -0.5, 0.98765]
        assert quantize_vector(vector, bits=16) == pytest.approx(vector, abs=1e-4)
        assert quantize_vector(vector, bits=8) == pytest.approx(vector, abs=1e-2)

    def test_largest_component_is_exact(self):
        assert quantize_vector([0.25, -2.0], bits=8)[1] == pytest.approx(-2.0)

    def test_zero_vector_unchanged(self):
        assert quantize_vector([0.0, 0.0]) == [0.0, 0.0]

    def test_unsupported_bits(self):
        with pytest.raises(InvalidArgumentError):
            quantize_vector([1.0], bits=4)


def test_calculate_sparsity():
    assert calculate_sparsity([0.0, 0.005, 0.5, -0.9]) == pytest.approx(0.5)
    assert calculate_sparsity([0.5, 0.5], threshold=0.6) == 1.0
    assert calculate_sparsity([]) == 0.0


class TestRankBySimilarity:
    def test_orders_by_descending_score(self):
        candidates = [([0.0, 1.0], "c"), ([1.0, 0.0], "a"), ([0.6, 0.8], "b")]

        ranked = rank_by_similarity([1.0, 0.0], candidates)

        assert [candidate.payload for candidate in ranked] == ["a", "b", "c"]
        assert [candidate.score for candidate in ranked] == pytest.approx([1.0, 0.6, 0.0])

    def test_ties_keep_input_order(self):
        candidates = [([0.8, 0.6], "A"), ([0.8, 0.6], "B"), ([1.0, 0.0], "top")]

        ranked = rank_by_similarity([1.0, 0.0], candidates)

        assert [candidate.payload for candidate in ranked] == ["top", "A", "B"]

    def test_top_k(self):
        candidates = [([1.0, float(i)], i) for i in range(5)]

        assert len(rank_by_similarity([1.0, 0.0], candidates, top_k=2)) == 2
        assert rank_by_similarity([1.0, 0.0], candidates, top_k=0) == []
        assert rank_by_similarity([1.0, 0.0], [], top_k=3) == []

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            rank_by_similarity([1.0, 0.0], [([1.0, 0.0, 0.0], "x")])
