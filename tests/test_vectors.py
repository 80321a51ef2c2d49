"""
Tests for similarity functions and vector stores.
"""

import pytest

from filesense.core.vectors import (
    SimpleVectorStore,
    cosine_similarity,
    create_vector_store,
    keyword_score,
)
from filesense.errors import ValidationError


class TestCosineSimilarity:

    @pytest.mark.parametrize("a,b,expected", [
        ([1, 0], [1, 0], 1.0),
        ([1, 0], [0, 1], 0.0),
        ([1, 0], [-1, 0], -1.0),
        ([1, 2, 3], [2, 4, 6], 1.0),
    ])
    def test_known_values(self, a, b, expected):
        """Cosine of simple vector pairs."""
        assert cosine_similarity(a, b) == pytest.approx(expected)

    def test_zero_norm_is_zero(self):
        """A zero vector scores 0 against anything."""
        assert cosine_similarity([0, 0], [1, 1]) == 0.0

    def test_length_mismatch_is_zero(self):
        """Vectors of different lengths score 0."""
        assert cosine_similarity([1, 0, 0], [1, 0]) == 0.0

    def test_empty_is_zero(self):
        assert cosine_similarity([], []) == 0.0


class TestKeywordScore:

    def test_counts_over_length(self):
        """Each occurrence adds 1 / len(keyword)."""
        content = "The report covers the report budget"
        assert keyword_score(["report", "budget"], content) == pytest.approx(2 / 6 + 1 / 6)

    def test_case_insensitive(self):
        """Matching ignores case on both sides."""
        assert keyword_score(["ABC"], "abc abc") == pytest.approx(2 / 3)

    def test_short_keywords_weigh_more_per_hit(self):
        """Two hits of "go" outweigh one hit of "test"."""
        assert keyword_score(["go", "test"], "go go test") == pytest.approx(1.25)

    def test_no_match_is_zero(self):
        assert keyword_score(["missing"], "nothing here") == 0.0


class TestSimpleVectorStore:

    def test_search_sorted_and_thresholded(self):
        """Results are sorted descending and respect min_similarity."""
        store = SimpleVectorStore(dimension=2)
        store.upsert("x.md", [1, 0])
        store.upsert("diag.md", [1, 1])
        store.upsert("y.md", [0, 1])
        results = store.search([1, 0], min_similarity=0.5)
        assert [path for path, _, _ in results] == ["x.md", "diag.md"]
        assert results[0][1] == pytest.approx(1.0)

    def test_ties_keep_insertion_order(self):
        """Equal similarities keep insertion order."""
        store = SimpleVectorStore(dimension=2)
        store.upsert("first.md", [1, 0])
        store.upsert("second.md", [2, 0])
        assert [p for p, _, _ in store.search([1, 0])] == ["first.md", "second.md"]

    def test_dimension_checked(self):
        """Upserting a vector of the wrong size is rejected."""
        store = SimpleVectorStore(dimension=3)
        with pytest.raises(ValidationError):
            store.upsert("a.md", [1, 0])

    def test_upsert_get_delete(self):
        """Upsert replaces, delete removes."""
        store = SimpleVectorStore(dimension=2)
        store.upsert("a.md", [1, 0], {"tags": ["x"]})
        store.upsert("a.md", [0, 1], {"tags": ["y"]})
        vector, meta = store.get("a.md")
        assert vector == [0.0, 1.0]
        assert meta == {"tags": ["y"]}
        assert store.count == 1
        assert store.delete("a.md") is True
        assert store.get("a.md") is None
        assert store.delete("a.md") is False

    def test_limit(self):
        store = SimpleVectorStore(dimension=2)
        for i in range(5):
            store.upsert(f"f{i}.md", [1, i])
        assert len(store.search([1, 0], limit=2)) == 2


class TestFactory:

    def test_unknown_backend(self):
        """Unknown backends raise ValueError."""
        with pytest.raises(ValueError):
            create_vector_store("chroma")

    def test_simple_backend(self):
        assert isinstance(create_vector_store("simple", 4), SimpleVectorStore)


class TestFAISSVectorStore:

    def test_matches_cosine(self):
        """FAISS scores equal the cosine similarity."""
        pytest.importorskip("faiss")
        store = create_vector_store("faiss", dimension=2)
        store.upsert("x.md", [2, 0])
        store.upsert("diag.md", [1, 1])
        results = store.search([1, 0])
        assert [p for p, _, _ in results] == ["x.md", "diag.md"]
        assert results[1][1] == pytest.approx(cosine_similarity([1, 0], [1, 1]), abs=1e-5)

    def test_query_dimension_mismatch_returns_empty(self):
        pytest.importorskip("faiss")
        store = create_vector_store("faiss", dimension=2)
        store.upsert("x.md", [1, 0])
        assert store.search([1, 0, 0]) == []

    def test_upsert_replaces(self):
        pytest.importorskip("faiss")
        store = create_vector_store("faiss", dimension=2)
        store.upsert("x.md", [1, 0])
        store.upsert("x.md", [0, 1])
        assert store.count == 1
        assert store.search([0, 1])[0][0] == "x.md"
        assert store.delete("x.md") is True
        assert store.search([0, 1]) == []
