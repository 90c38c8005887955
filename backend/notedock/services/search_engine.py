"""
NoteDock Backend - Search Engine (Hybrid Ranking)
==================================================

What:  Ranks the notes of one workspace against a query, a tag set and a type.
Why:   Combines keyword matching (always available) with embedding similarity
       (when the provider is up and the note has a vector).
How:   candidate fetch → tag filter → score → sort. One store query and at
       most one embedding call per search, regardless of candidate count.

Scoring:
    lexical  = 0.6 * term coverage (title + field contents)
             + 0.2 * term coverage (title only)
             + 0.2 * whole-phrase hit
    semantic = cosine(query_vec, note_vec) clamped to [0, 1]
               (0 for a note without a usable vector)
    combined = w * semantic + (1 - w) * lexical   when the query was embedded
             = lexical                            when it was not (provider
                                                  down, or no note has a vector)

    Sort: combined desc, updated_at desc, id asc.
    Empty query: every score is 0, so the order is simply updated_at desc.

Tag filter (OR semantics):
    tags = {}   → identity (all candidates)
    tags = T    → notes whose tags intersect T
    Monotonic: T1 ⊆ T2 implies result(T1) ⊆ result(T2).
"""

import logging
import re
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Sequence
from uuid import UUID

import numpy as np

from notedock.config import settings
from notedock.exceptions import EmbeddingUnavailableError
from notedock.schemas.note import NoteDocument, NoteType
from notedock.services.embedding_base import EmbeddingProvider, EmbeddingPurpose
from notedock.services.note_store import NoteStore

logger = logging.getLogger(__name__)

_TERM_PATTERN = re.compile(r"\w+", re.UNICODE)

LEXICAL_COVERAGE_WEIGHT = 0.6
LEXICAL_TITLE_WEIGHT = 0.2
LEXICAL_PHRASE_WEIGHT = 0.2


def tokenize(text: str) -> List[str]:
    """Lower-cased word terms, duplicates removed, order kept."""
    seen: List[str] = []
    for term in _TERM_PATTERN.findall((text or "").lower()):
        if term not in seen:
            seen.append(term)
    return seen


def filter_by_tags(notes: Sequence[NoteDocument], tags: AbstractSet[str]) -> List[NoteDocument]:
    if not tags:
        return list(notes)
    return [note for note in notes if not tags.isdisjoint(note.tags)]


def lexical_score(query: str, note: NoteDocument) -> float:
    """
    Case-insensitive match strength of `query` against a note, in [0, 1].

    Terms match as substrings, so "meet" matches "meeting".
    """
    phrase = " ".join((query or "").lower().split())
    if not phrase:
        return 0.0

    title = " ".join(note.title.lower().split())
    body = " ".join(
        " ".join(part.lower().split())
        for part in [note.title] + [field.content for field in note.fields]
    )

    terms = tokenize(phrase)
    coverage = 0.0
    title_coverage = 0.0
    if terms:
        coverage = sum(1 for term in terms if term in body) / len(terms)
        title_coverage = sum(1 for term in terms if term in title) / len(terms)
    phrase_hit = 1.0 if phrase in body else 0.0

    return (
        LEXICAL_COVERAGE_WEIGHT * coverage
        + LEXICAL_TITLE_WEIGHT * title_coverage
        + LEXICAL_PHRASE_WEIGHT * phrase_hit
    )


def cosine_similarities(
    query_vector: Sequence[float],
    embeddings: Sequence[Optional[Sequence[float]]],
) -> np.ndarray:
    """
    Cosine similarity of `query_vector` with every embedding, in one pass.

    Missing, zero or wrongly sized vectors score 0. Negative similarities are
    clamped to 0 so an unrelated note never scores below a vector-less one.
    """
    scores = np.zeros(len(embeddings), dtype=float)
    query = np.asarray(query_vector, dtype=float)
    query_norm = np.linalg.norm(query)
    if query.ndim != 1 or query_norm == 0:
        return scores

    usable = [
        i for i, vector in enumerate(embeddings)
        if vector is not None and len(vector) == query.shape[0]
    ]
    if not usable:
        return scores

    matrix = np.asarray([embeddings[i] for i in usable], dtype=float)
    norms = np.linalg.norm(matrix, axis=1)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        similarities = np.where(norms > 0, dots / (norms * query_norm), 0.0)
    scores[usable] = np.clip(similarities, 0.0, 1.0)
    return scores


@dataclass
class ScoredNote:
    note: NoteDocument
    score: float
    lexical: float
    semantic: float
    used_semantic: bool


class SearchEngine:
    """
    Ranking over NoteStore candidates.

    The engine never raises because of the embedding provider: an unavailable
    provider switches the whole call to lexical scoring.
    """

    def __init__(
        self,
        store: NoteStore,
        embedder: EmbeddingProvider,
        semantic_weight: Optional[float] = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.semantic_weight = (
            settings.search_semantic_weight if semantic_weight is None else semantic_weight
        )

    async def search(
        self,
        workspace_id: UUID,
        note_type: NoteType,
        tags: AbstractSet[str],
        query: str,
    ) -> List[NoteDocument]:
        ranked = await self.rank(workspace_id, note_type, tags, query)
        return [item.note for item in ranked]

    async def rank(
        self,
        workspace_id: UUID,
        note_type: NoteType,
        tags: AbstractSet[str],
        query: str,
    ) -> List[ScoredNote]:
        candidates = await self._store.query_by_workspace(workspace_id, note_type)
        candidates = filter_by_tags(candidates, frozenset(tags or ()))

        query = (query or "").strip()
        if not query:
            scored = [ScoredNote(n, 0.0, 0.0, 0.0, False) for n in candidates]
            return self._sorted(scored)

        query_vector = await self._embed_query(query, candidates)
        embeddings = [note.embedding for note in candidates]
        if query_vector is not None:
            semantic = cosine_similarities(query_vector, embeddings)
        else:
            semantic = np.zeros(len(candidates), dtype=float)

        # Without a query vector every note is on the lexical scale alone
        w = self.semantic_weight if query_vector is not None else 0.0
        scored: List[ScoredNote] = []
        for i, note in enumerate(candidates):
            lexical = lexical_score(query, note)
            has_vectors = (
                query_vector is not None
                and note.embedding is not None
                and len(note.embedding) == len(query_vector)
            )
            combined = w * float(semantic[i]) + (1.0 - w) * lexical
            scored.append(ScoredNote(note, combined, lexical, float(semantic[i]), has_vectors))

        logger.debug(
            "Ranked %d notes in workspace %s (semantic=%s)",
            len(scored), workspace_id, query_vector is not None,
        )
        return self._sorted(scored)

    async def _embed_query(
        self, query: str, candidates: Sequence[NoteDocument]
    ) -> Optional[List[float]]:
        # No candidate carries a vector, so a query vector could not change the order
        if not any(note.embedding for note in candidates):
            return None
        try:
            return await self._embedder.embed(query, EmbeddingPurpose.QUERY)
        except EmbeddingUnavailableError as e:
            logger.warning("Query embedding unavailable, using lexical ranking: %s", e.message)
            return None

    @staticmethod
    def _sorted(scored: List[ScoredNote]) -> List[ScoredNote]:
        return sorted(
            scored,
            key=lambda item: (
                -item.score,
                -item.note.updated_at.timestamp(),
                str(item.note.id),
            ),
        )
