import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .entities import BookRecord
from .errors import BookNotFoundError, BookValidationError, FullTextUnavailableError, InvalidBookIdError
from .models import Book

REQUIRED_TEXT_FIELDS = ("title", "author")
MUTABLE_FIELDS = ("title", "author", "genre", "available_copies", "isbn", "published_year")
SEARCH_FIELDS = ("title", "author", "genre")
TEXT_SEARCH_CONFIG = "english"

_LIKE_ESCAPE = "\\"


def _escape_like(token: str) -> str:
    return (
        token.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def _validate(fields: Mapping[str, Any]) -> None:
    for name in REQUIRED_TEXT_FIELDS:
        value = fields.get(name)
        if value is None or not str(value).strip():
            raise BookValidationError("Title and author required")
    copies = fields.get("available_copies")
    if copies is None or copies < 0:
        raise BookValidationError("availableCopies must be a non-negative integer")


class BookStore:
    """Book persistence over a SQLAlchemy session.

    Every mutating call commits on its own; there are no multi-record
    transactions.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def insert(self, fields: Mapping[str, Any]) -> Book:
        values = {name: fields[name] for name in MUTABLE_FIELDS if name in fields}
        values.setdefault("available_copies", 1)
        _validate(values)
        record = BookRecord(**values)
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return self._to_schema(record)

    def get_by_id(self, book_id: str) -> Book:
        return self._to_schema(self._get_record(book_id))

    def list_all(self) -> list[Book]:
        stmt = select(BookRecord).order_by(BookRecord.created_at.desc())
        records = self.session.execute(stmt).scalars().all()
        return [self._to_schema(record) for record in records]

    def update(self, book_id: str, fields: Mapping[str, Any]) -> Book:
        record = self._get_record(book_id)
        changes = {name: value for name, value in fields.items() if name in MUTABLE_FIELDS}
        merged = {name: getattr(record, name) for name in MUTABLE_FIELDS}
        merged.update(changes)
        _validate(merged)

        for name, value in changes.items():
            setattr(record, name, value)
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return self._to_schema(record)

    def delete(self, book_id: str) -> Book:
        record = self._get_record(book_id)
        deleted = self._to_schema(record)
        self.session.delete(record)
        self.session.commit()
        return deleted

    def full_text_search(self, query: str, limit: int) -> list[Book]:
        """Relevance-ranked search using the database's native text index.

        Only PostgreSQL provides one; other backends raise
        :class:`FullTextUnavailableError`. The query runs in a savepoint so a
        failure leaves the surrounding transaction usable.
        """
        if self.dialect != "postgresql":
            raise FullTextUnavailableError()

        document = func.to_tsvector(
            TEXT_SEARCH_CONFIG,
            func.concat_ws(" ", BookRecord.title, BookRecord.author, func.coalesce(BookRecord.genre, "")),
        )
        ts_query = func.plainto_tsquery(TEXT_SEARCH_CONFIG, query)
        score = func.ts_rank(document, ts_query)
        stmt = select(BookRecord).where(document.op("@@")(ts_query)).order_by(score.desc()).limit(limit)

        with self.session.begin_nested():
            records = self.session.execute(stmt).scalars().all()
        return [self._to_schema(record) for record in records]

    def pattern_search(self, tokens: Iterable[str], limit: int) -> list[Book]:
        """Books whose title, author or genre contains any of ``tokens``, ignoring case."""
        clauses = [
            getattr(BookRecord, field).ilike(f"%{_escape_like(token)}%", escape=_LIKE_ESCAPE)
            for token in tokens
            for field in SEARCH_FIELDS
        ]
        if not clauses:
            return []
        stmt = select(BookRecord).where(or_(*clauses)).limit(limit)
        records = self.session.execute(stmt).scalars().all()
        return [self._to_schema(record) for record in records]

    def _get_record(self, book_id: str) -> BookRecord:
        try:
            key = str(uuid.UUID(str(book_id)))
        except ValueError as exc:
            raise InvalidBookIdError() from exc
        record = self.session.get(BookRecord, key)
        if record is None:
            raise BookNotFoundError()
        return record

    @staticmethod
    def _to_schema(record: BookRecord) -> Book:
        return Book.model_validate(record, from_attributes=True)
