"""
NoteDock Backend - Abstract Embedding Provider Interface
=========================================================

What:  Contract for services that turn text into a fixed-length vector.
Why:   NoteService and SearchEngine only see this interface, so the Gemini
       implementation can be replaced (or faked in tests) without touching
       ranking or persistence code.

Availability contract:
    Embedding is an enhancement, not a correctness requirement. Providers
    raise EmbeddingUnavailableError for every failure mode; callers catch it
    and continue with a null embedding or lexical-only ranking.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, List, Tuple


class EmbeddingPurpose(str, Enum):
    """Hint for providers that embed documents and queries differently."""

    DOCUMENT = "document"
    QUERY = "query"


def build_note_text(title: str, fields: Iterable[Tuple[str, str]]) -> str:
    """
    Text that represents a note for embedding purposes.

    The title comes first, then one "label: content" line per field, so
    labels contribute meaning ("Ingredients: flour, eggs").
    """
    lines = [title.strip()] if title and title.strip() else []
    for label, content in fields:
        label = (label or "").strip()
        content = (content or "").strip()
        if label and content:
            lines.append(f"{label}: {content}")
        elif content:
            lines.append(content)
    return "\n".join(lines)


class EmbeddingProvider(ABC):
    """
    Abstract interface for text embedding.

    Contract:
        - embed() returns a list of exactly `dimensions` floats
        - every failure (network, timeout, open circuit, bad output) raises
          EmbeddingUnavailableError; nothing else escapes
    """

    @property
    @abstractmethod
    def dimensions(self) -> int:
        ...

    @abstractmethod
    async def embed(
        self, text: str, purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT
    ) -> List[float]:
        """
        Embed one text.

        Raises:
            EmbeddingUnavailableError: when no vector can be produced.
        """
        ...

    @abstractmethod
    def status(self) -> str:
        """One of: available, circuit_open, unconfigured."""
        ...
