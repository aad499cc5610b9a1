"""Two-tier book search.

Tier 1 asks the database for a relevance-ranked full-text match. When that
finds nothing, or the database cannot do full-text search at all, tier 2
falls back to a loose case-insensitive substring match where a book matches
if ANY query token appears in its title, author or genre.
"""

import enum
import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from .errors import FullTextUnavailableError
from .models import Book
from .store import BookStore

DEFAULT_LIMIT = 200

logger = logging.getLogger("library_catalog.search")


class SearchTier(str, enum.Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    EMPTY = "empty"


@dataclass(frozen=True)
class SearchOutcome:
    tier: SearchTier
    books: list[Book] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "SearchOutcome":
        return cls(SearchTier.EMPTY)


def tokenize(query: str) -> list[str]:
    return query.split()


class RetrievalEngine:
    def __init__(self, store: BookStore, limit: int = DEFAULT_LIMIT):
        self.store = store
        self.limit = limit

    def search(self, query: str) -> SearchOutcome:
        query = (query or "").strip()
        if not query:
            return SearchOutcome.empty()

        primary = self.primary(query)
        if primary:
            return SearchOutcome(SearchTier.PRIMARY, primary)

        fallback = self.fallback(query)
        if fallback:
            return SearchOutcome(SearchTier.FALLBACK, fallback)
        return SearchOutcome.empty()

    def primary(self, query: str) -> list[Book]:
        """Run the full-text tier; an unavailable or failing index yields no hits."""
        try:
            return self.store.full_text_search(query, self.limit)
        except FullTextUnavailableError:
            logger.debug("search.primary.unavailable")
        except SQLAlchemyError:
            logger.warning("search.primary.failed", exc_info=True, extra={"query": query})
        return []

    def fallback(self, query: str) -> list[Book]:
        tokens = tokenize(query)
        if not tokens:
            return []
        return self.store.pattern_search(tokens, self.limit)
