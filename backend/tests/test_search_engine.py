"""
NoteDock Backend - Search Engine Tests
=======================================

What:  Tag filtering, lexical/semantic scoring and ordering of SearchEngine.

What we test:
    ✅ Empty tag set is the identity filter; OR semantics; monotonicity
    ✅ Lexical score favours title hits and whole-phrase hits
    ✅ Vectorized cosine handles missing, zero and wrongly sized vectors
    ✅ Semantic similarity lifts notes without a keyword match
    ✅ One scale for every note: a missing vector counts as semantic 0
    ✅ Deterministic tie-break: updated_at desc, then id asc
    ✅ Provider outage falls back to lexical ranking without raising
    ✅ One embedding call per search, none for an empty query
    ✅ 400 notes, three queries, each well under 5 seconds
"""

import time
import uuid
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from notedock.schemas.note import FieldKind, NoteDocument, NoteField, NoteType
from notedock.services.embedding_base import EmbeddingPurpose, build_note_text
from notedock.services.search_engine import (
    SearchEngine,
    cosine_similarities,
    filter_by_tags,
    lexical_score,
    tokenize,
)

BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def doc(seed, title, content="", tags=(), embedding=None, minutes=0, note_id=None):
    return NoteDocument(
        id=note_id or uuid.uuid4(),
        author_id=seed.owner,
        workspace_id=seed.home,
        note_type=NoteType.CONTENT,
        title=title,
        fields=[NoteField(label="Body", type=FieldKind.TEXT, content=content)],
        tags=list(tags),
        embedding=embedding,
        created_at=BASE_TIME,
        updated_at=BASE_TIME + timedelta(minutes=minutes),
    )


async def embed_document(embedder, note: NoteDocument) -> NoteDocument:
    text = build_note_text(note.title, [(f.label, f.content) for f in note.fields])
    vector = await embedder.embed(text, EmbeddingPurpose.DOCUMENT)
    return note.model_copy(update={"embedding": vector})


# ══════════════════════════════════════════════════════════════════════════
# Pure functions
# ══════════════════════════════════════════════════════════════════════════

class TestTagFilter:
    def test_empty_tag_set_is_identity(self, seed):
        notes = [doc(seed, "a", tags=["x"]), doc(seed, "b"), doc(seed, "c", tags=["y"])]
        assert filter_by_tags(notes, frozenset()) == notes

    def test_any_matching_tag_is_enough(self, seed):
        a = doc(seed, "a", tags=["work", "urgent"])
        b = doc(seed, "b", tags=["home"])
        c = doc(seed, "c", tags=[])
        assert filter_by_tags([a, b, c], frozenset({"urgent", "home"})) == [a, b]

    def test_larger_tag_set_never_removes_matches(self, seed):
        notes = [
            doc(seed, "a", tags=["work"]),
            doc(seed, "b", tags=["home"]),
            doc(seed, "c", tags=["work", "home"]),
            doc(seed, "d", tags=["misc"]),
        ]
        small = {n.id for n in filter_by_tags(notes, frozenset({"work"}))}
        large = {n.id for n in filter_by_tags(notes, frozenset({"work", "home"}))}
        assert small <= large
        assert len(large) == 3


class TestLexicalScore:
    def test_tokenize_dedupes_and_lowercases(self):
        assert tokenize("Budget budget, REVIEW!") == ["budget", "review"]

    def test_no_match_scores_zero(self, seed):
        assert lexical_score("kangaroo", doc(seed, "Budget", "numbers")) == 0.0

    def test_empty_query_scores_zero(self, seed):
        assert lexical_score("   ", doc(seed, "Budget")) == 0.0

    def test_title_and_phrase_hit_scores_one(self, seed):
        note = doc(seed, "Budget review", "Q3 budget review with finance")
        assert lexical_score("budget review", note) == pytest.approx(1.0)

    def test_title_match_beats_body_match(self, seed):
        in_title = doc(seed, "Budget", "numbers")
        in_body = doc(seed, "Numbers", "the budget")
        assert lexical_score("budget", in_title) > lexical_score("budget", in_body)

    def test_case_insensitive_substring(self, seed):
        note = doc(seed, "Meeting notes", "")
        assert lexical_score("MEET", note) > 0


class TestCosineSimilarities:
    def test_identical_vector_scores_one(self):
        scores = cosine_similarities([1.0, 2.0, 3.0], [[1.0, 2.0, 3.0]])
        assert scores[0] == pytest.approx(1.0)

    def test_missing_zero_and_mismatched_vectors_score_zero(self):
        scores = cosine_similarities(
            [1.0, 0.0],
            [None, [0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 0.0]],
        )
        assert list(scores) == pytest.approx([0.0, 0.0, 0.0, 1.0])

    def test_negative_similarity_is_clamped(self):
        scores = cosine_similarities([1.0, 0.0], [[-1.0, 0.0]])
        assert scores[0] == 0.0

    def test_zero_query_vector(self):
        scores = cosine_similarities([0.0, 0.0], [[1.0, 1.0]])
        assert isinstance(scores, np.ndarray)
        assert scores[0] == 0.0


# ══════════════════════════════════════════════════════════════════════════
# SearchEngine over the SQL store
# ══════════════════════════════════════════════════════════════════════════

class TestSearchRanking:
    @pytest.mark.asyncio
    async def test_empty_query_orders_by_recency_then_id(self, store, embedder, seed):
        low_id = uuid.UUID("00000000-0000-0000-0000-0000000000aa")
        high_id = uuid.UUID("00000000-0000-0000-0000-0000000000bb")
        await store.insert(doc(seed, "older", minutes=0))
        await store.insert(doc(seed, "tie high", minutes=5, note_id=high_id))
        await store.insert(doc(seed, "tie low", minutes=5, note_id=low_id))
        await store.insert(doc(seed, "newest", minutes=10))

        engine = SearchEngine(store, embedder)
        results = await engine.search(seed.home, NoteType.CONTENT, frozenset(), "")

        assert [n.title for n in results] == ["newest", "tie low", "tie high", "older"]
        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_lexical_ranking_without_embeddings(self, store, embedder, seed):
        await store.insert(doc(seed, "Garden plan", "tomatoes and basil", minutes=3))
        await store.insert(doc(seed, "Budget review", "Q3 budget review", minutes=1))
        await store.insert(doc(seed, "Travel", "the budget for Lisbon", minutes=2))

        engine = SearchEngine(store, embedder)
        results = await engine.search(seed.home, NoteType.CONTENT, frozenset(), "budget review")

        assert [n.title for n in results] == ["Budget review", "Travel", "Garden plan"]

    @pytest.mark.asyncio
    async def test_semantic_match_outranks_partial_keyword_match(self, store, embedder, seed):
        query_vector = await embedder.embed("quarterly finances", EmbeddingPurpose.QUERY)
        await store.insert(doc(seed, "Q3 numbers", "spreadsheet", embedding=query_vector))
        await store.insert(doc(seed, "Finances", "household"))

        engine = SearchEngine(store, embedder, semantic_weight=0.7)
        ranked = await engine.rank(seed.home, NoteType.CONTENT, frozenset(), "quarterly finances")

        assert ranked[0].note.title == "Q3 numbers"
        assert ranked[0].used_semantic is True
        assert ranked[0].score == pytest.approx(0.7)
        assert ranked[1].used_semantic is False
        assert ranked[1].semantic == 0.0
        assert ranked[1].score == pytest.approx(0.3 * ranked[1].lexical)

    @pytest.mark.asyncio
    async def test_embedded_note_never_ranks_below_identical_vectorless_note(self, store, embedder, seed):
        embedded = await embed_document(
            embedder, doc(seed, "Budget review", "quarterly budget numbers", minutes=0)
        )
        await store.insert(embedded)
        vectorless = await store.insert(
            doc(seed, "Budget review", "quarterly budget numbers", minutes=5)
        )

        engine = SearchEngine(store, embedder, semantic_weight=0.7)
        ranked = await engine.rank(seed.home, NoteType.CONTENT, frozenset(), "budget review")

        assert [r.note.id for r in ranked] == [embedded.id, vectorless.id]
        assert ranked[0].lexical == pytest.approx(ranked[1].lexical)
        assert ranked[0].semantic > 0.0
        assert ranked[1].score == pytest.approx(0.3 * ranked[1].lexical)
        assert ranked[0].score > ranked[1].score

    @pytest.mark.asyncio
    async def test_notes_without_embedding_are_still_ranked(self, store, embedder, seed):
        with_vector = await embed_document(embedder, doc(seed, "Sprint retro", "what went well"))
        await store.insert(with_vector)
        await store.insert(doc(seed, "Sprint planning", "next sprint goals"))

        engine = SearchEngine(store, embedder)
        results = await engine.search(seed.home, NoteType.CONTENT, frozenset(), "sprint")

        assert {n.title for n in results} == {"Sprint retro", "Sprint planning"}

    @pytest.mark.asyncio
    async def test_tags_filter_before_ranking(self, store, embedder, seed):
        await store.insert(doc(seed, "Budget", tags=["finance"]))
        await store.insert(doc(seed, "Budget trip", tags=["travel"]))

        engine = SearchEngine(store, embedder)
        results = await engine.search(seed.home, NoteType.CONTENT, frozenset({"travel"}), "budget")

        assert [n.title for n in results] == ["Budget trip"]

    @pytest.mark.asyncio
    async def test_tag_identity_against_all_known_tags(self, store, embedder, seed):
        await store.insert(doc(seed, "a", tags=["x"]))
        await store.insert(doc(seed, "b", tags=["y", "z"]))
        await store.insert(doc(seed, "c", tags=["x", "z"]))

        engine = SearchEngine(store, embedder)
        unfiltered = await engine.search(seed.home, NoteType.CONTENT, frozenset(), "")
        all_tags = await engine.search(seed.home, NoteType.CONTENT, frozenset({"x", "y", "z"}), "")

        assert {n.id for n in unfiltered} == {n.id for n in all_tags}


class TestSearchDegradation:
    @pytest.mark.asyncio
    async def test_provider_outage_falls_back_to_lexical(self, store, embedder, seed):
        await store.insert(await embed_document(embedder, doc(seed, "Release checklist", "deploy steps")))
        await store.insert(doc(seed, "Groceries", "milk"))
        embedder.available = False
        embedder.calls.clear()

        engine = SearchEngine(store, embedder)
        ranked = await engine.rank(seed.home, NoteType.CONTENT, frozenset(), "release")

        assert [r.note.title for r in ranked] == ["Release checklist", "Groceries"]
        assert all(not r.used_semantic for r in ranked)
        assert [r.score for r in ranked] == pytest.approx([r.lexical for r in ranked])
        assert len(embedder.calls) == 1

    @pytest.mark.asyncio
    async def test_query_embedded_once_per_search(self, store, embedder, seed):
        for i in range(25):
            await store.insert(await embed_document(embedder, doc(seed, f"Note {i}", "shared words")))
        embedder.calls.clear()

        engine = SearchEngine(store, embedder)
        await engine.search(seed.home, NoteType.CONTENT, frozenset(), "shared")

        assert len(embedder.calls) == 1
        assert embedder.calls[0][1] == EmbeddingPurpose.QUERY


class TestSearchLatency:
    @pytest.mark.asyncio
    async def test_four_hundred_notes_three_queries(self, store, embedder, seed):
        topics = ["budget", "roadmap", "hiring", "garden", "travel", "recipe", "retro", "design"]
        for i in range(400):
            topic = topics[i % len(topics)]
            note = doc(
                seed,
                f"{topic.title()} note {i}",
                f"Details about {topic} item {i} and follow-ups",
                tags=[topic],
                minutes=i,
            )
            if i % 3:
                note = await embed_document(embedder, note)
            await store.insert(note)
        embedder.calls.clear()

        engine = SearchEngine(store, embedder)
        for query in ("budget planning", "hiring roadmap", "garden recipe ideas"):
            started = time.perf_counter()
            results = await engine.search(seed.home, NoteType.CONTENT, frozenset(), query)
            elapsed = time.perf_counter() - started

            assert len(results) == 400
            assert elapsed < 5.0

        assert len(embedder.calls) == 3
