"""
Tests for query processing, indexing, personalization and the search service.
"""

import pytest

from conftest import NOW, FailingEmbeddingProvider, MockEmbeddingProvider
from filesense.core.models import Candidate
from filesense.core.vectors import SimpleVectorStore
from filesense.errors import ValidationError
from filesense.profiles.profile import Profile, ProfileStore
from filesense.search import (
    QueryProcessor,
    SemanticIndexer,
    SemanticSearch,
    extract_snippet,
    extract_title,
    personal_score,
    rank_results,
    validate_options,
)

E1 = [1.0, 0, 0, 0, 0, 0, 0, 0]
E2 = [0, 1.0, 0, 0, 0, 0, 0, 0]


class ZeroEmbeddings:
    dimension = 8

    def embed(self, text):
        return [0.0] * 8


class TestQueryProcessor:

    def test_expansion_keeps_original_terms(self):
        """Synonyms are appended after each token, never replacing it."""
        query = QueryProcessor().process("recent docs for billing .md")
        assert query.tokens[:3] == ["recent", "latest", "new"]
        assert "docs" in query.tokens and "documentation" in query.tokens
        assert query.entities == [".md"]
        assert query.extensions == ["md"]
        assert query.intent == "recent"
        assert "for" not in query.keywords
        assert "billing" in query.keywords

    @pytest.mark.parametrize("raw,intent", [
        ("latest invoices", "recent"),
        ("big files", "size"),
        ("function parser", "code"),
        ("text notes", "document"),
        ("holiday photo", "image"),
        ("quarterly plan", "general"),
    ])
    def test_intent_first_match_wins(self, raw, intent):
        assert QueryProcessor().process(raw).intent == intent

    def test_stop_words_and_short_tokens_dropped(self):
        query = QueryProcessor(expansion=False).process("the plan of an ox")
        assert query.keywords == ["plan"]
        assert query.tokens == ["the", "plan", "of", "an", "ox"]

    @pytest.mark.parametrize("raw", ["", "   ", "x" * 2001, None])
    def test_invalid_query(self, raw):
        with pytest.raises(ValidationError):
            QueryProcessor().process(raw)

    def test_vector_from_provider(self):
        processor = QueryProcessor(MockEmbeddingProvider({"billing": E1}))
        assert processor.process("billing").vector == E1

    @pytest.mark.parametrize("embeddings", [FailingEmbeddingProvider(), ZeroEmbeddings(), None])
    def test_embedding_failure_leaves_vector_unset(self, embeddings):
        """Failures, zero vectors and no provider all give vector=None."""
        query = QueryProcessor(embeddings).process("billing")
        assert query.vector is None
        assert query.keywords == ["billing"]


class TestRanker:

    def make_profile(self):
        return Profile(subject_id="u1", click_weights={"pdf": 1.0, "reports": 0.5})

    def test_personal_score(self):
        """0.3 type + 0.2 categories + 0.1 recency."""
        candidate = Candidate(path="r.pdf", confidence=0.8, file_type="pdf", categories=["reports"], modified=NOW)
        assert personal_score(candidate, self.make_profile(), NOW) == pytest.approx(0.5)

    @pytest.mark.parametrize("level,expected", [("low", 0.525), ("medium", 0.65), ("high", 0.775)])
    def test_levels_scale_personal_score(self, level, expected):
        candidate = Candidate(path="r.pdf", confidence=0.8, file_type="pdf", categories=["reports"], modified=NOW)
        ranked = rank_results([candidate], self.make_profile(), NOW, level)
        assert ranked[0].relevance == pytest.approx(expected)

    def test_without_profile_relevance_is_confidence(self):
        ranked = rank_results([Candidate(path="a", confidence=0.4)], None, NOW)
        assert ranked[0].relevance == 0.4

    def test_preference_can_reorder(self):
        """A preferred type can overtake a slightly stronger base score."""
        plain = Candidate(path="a.md", confidence=0.6, file_type="md")
        preferred = Candidate(path="b.pdf", confidence=0.5, file_type="pdf")
        ranked = rank_results([plain, preferred], self.make_profile(), NOW)
        assert [c.path for c in ranked] == ["b.pdf", "a.md"]


class TestIndexer:

    def test_versions_increase(self):
        """Every (re)index gets the next global version."""
        indexer = SemanticIndexer(SimpleVectorStore(dimension=8))
        first = indexer.index_file("a.md", "alpha")
        second = indexer.index_file("b.md", "beta")
        again = indexer.index_file("a.md", "alpha v2")
        assert (first.index_version, second.index_version, again.index_version) == (1, 2, 3)
        assert len(indexer) == 2
        assert indexer.get("a.md").content == "alpha v2"

    def test_vector_stored_when_embedded(self):
        vectors = SimpleVectorStore(dimension=8)
        indexer = SemanticIndexer(vectors, MockEmbeddingProvider({"billing": E1}))
        indexed = indexer.index_file("billing.md", "invoices")
        assert indexed.vector == E1
        assert vectors.count == 1

    def test_embedding_failure_still_indexes(self):
        """A failing provider leaves the file keyword-searchable."""
        vectors = SimpleVectorStore(dimension=8)
        indexer = SemanticIndexer(vectors, FailingEmbeddingProvider())
        indexed = indexer.index_file("a.md", "some text")
        assert indexed.vector is None
        assert vectors.count == 0
        assert [c.path for c in indexer.keyword_search(["text"])] == ["a.md"]

    def test_invalid_metadata(self):
        indexer = SemanticIndexer(SimpleVectorStore(dimension=8))
        with pytest.raises(ValidationError):
            indexer.index_file("a.md", "x", {"size": "huge"})

    def test_remove(self):
        indexer = SemanticIndexer(SimpleVectorStore(dimension=8))
        indexer.index_file("a.md", "x")
        assert indexer.remove("a.md") is True
        assert indexer.get("a.md") is None

    def test_title_and_snippet(self):
        assert extract_title("docs/plans/q3.md") == "q3.md"
        text = "intro " * 40 + "the billing section starts here"
        snippet = extract_snippet(text, ["billing"], width=60)
        assert "billing" in snippet
        assert snippet.startswith("...")


class TestValidateOptions:

    def test_normalizes_file_types(self):
        """Leading dots and case are ignored."""
        assert validate_options({"file_types": [".PY", "md"]}) == {"file_types": {"py", "md"}}

    @pytest.mark.parametrize("options", [
        {"colour": "red"},
        {"max_size": -1},
        {"max_size": "10"},
        {"file_types": [1]},
        ["file_types"],
    ])
    def test_rejects_bad_options(self, options):
        with pytest.raises(ValidationError):
            validate_options(options)


class TestSemanticSearch:

    @pytest.fixture
    def keyword_search(self):
        vectors = SimpleVectorStore(dimension=8)
        indexer = SemanticIndexer(vectors)
        indexer.index_file("docs/billing.md", "Billing process for invoices. billing rules.", {"size": 500})
        indexer.index_file("src/billing.py", "def billing(): pass", {"size": 5000})
        indexer.index_file("notes/garden.txt", "garden tips")
        return SemanticSearch(QueryProcessor(), indexer, vectors, ProfileStore(vector_dimensions=8))

    @pytest.fixture
    def vector_search(self):
        embeddings = MockEmbeddingProvider({"billing": E1, "garden": E2})
        vectors = SimpleVectorStore(dimension=8)
        indexer = SemanticIndexer(vectors, embeddings)
        indexer.index_file("docs/billing.md", "invoices", {"categories": ["finance"]})
        indexer.index_file("notes/garden.md", "garden tips")
        return SemanticSearch(QueryProcessor(embeddings), indexer, vectors, ProfileStore(vector_dimensions=8))

    def test_keyword_fallback(self, keyword_search):
        """Without a query vector, keyword overlap ranks the files."""
        results = keyword_search.search("billing", "u1")
        assert [c.path for c in results] == ["docs/billing.md", "src/billing.py"]
        assert all(c.source == "keyword" for c in results)
        assert "Billing" in results[0].snippet
        assert results[0].relevance is not None

    def test_file_type_filter(self, keyword_search):
        results = keyword_search.search("billing", "u1", {"file_types": [".py"]})
        assert [c.path for c in results] == ["src/billing.py"]

    def test_max_size_filter(self, keyword_search):
        results = keyword_search.search("billing", "u1", {"max_size": 1000})
        assert [c.path for c in results] == ["docs/billing.md"]

    def test_extension_entity_filters(self, keyword_search):
        """A ".py" token in the query restricts results to that extension."""
        results = keyword_search.search("billing .py", "u1")
        assert [c.path for c in results] == ["src/billing.py"]

    def test_unknown_option_rejected(self, keyword_search):
        with pytest.raises(ValidationError):
            keyword_search.search("billing", "u1", {"sort": "name"})
        assert keyword_search.get_stats()["total_searches"] == 0

    def test_max_results(self, keyword_search):
        keyword_search.max_results = 1
        assert len(keyword_search.search("billing", "u1")) == 1

    def test_vector_path(self, vector_search):
        """With a query vector, cosine similarity drives the results."""
        results = vector_search.search("billing", "u1")
        assert [c.path for c in results] == ["docs/billing.md"]
        assert results[0].source == "vector"
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].title == "billing.md"

    def test_search_stats(self, keyword_search):
        keyword_search.search("billing", "u1")
        keyword_search.search("garden", "u1")
        stats = keyword_search.get_stats()
        assert stats["total_searches"] == 2
        assert stats["search_history_size"] == 2
        assert stats["average_latency_ms"] >= 0

    def test_search_history_bounded(self, keyword_search):
        keyword_search.history_limit = 5
        keyword_search.history_trim = 2
        for _ in range(6):
            keyword_search.search("garden", "u1")
        stats = keyword_search.get_stats()
        assert stats["total_searches"] == 6
        assert stats["search_history_size"] == 4

    def test_record_click_learns_preferences(self, vector_search):
        """Clicks raise click weights and feed the personal vector."""
        vector_search.search("billing", "u1")
        assert vector_search.record_click("u1", "docs/billing.md") is True
        profile = vector_search.profiles.get("u1")
        assert profile.click_weights == {"md": pytest.approx(0.2), "finance": pytest.approx(0.2)}
        assert profile.personal_vector.tolist() == pytest.approx(E1)
        assert vector_search.get_stats()["click_through_rate"] == 1.0

    def test_record_click_unknown_path(self, vector_search):
        assert vector_search.record_click("u1", "missing.md") is False
