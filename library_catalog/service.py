from typing import Any

from .errors import BookValidationError
from .models import Book, CreateBook, UpdateBook
from .store import BookStore

OPTIONAL_TEXT_FIELDS = ("genre", "isbn")


def _drop_blank_text(fields: dict[str, Any]) -> dict[str, Any]:
    for name in OPTIONAL_TEXT_FIELDS:
        if name in fields and not fields[name]:
            fields[name] = None
    return fields


class BookService:
    def __init__(self, store: BookStore):
        self.store = store

    def list(self) -> list[Book]:
        return self.store.list_all()

    def create(self, payload: CreateBook) -> Book:
        if not payload.title or not payload.author:
            raise BookValidationError("Title and author required")
        return self.store.insert(_drop_blank_text(payload.model_dump()))

    def get(self, book_id: str) -> Book:
        return self.store.get_by_id(book_id)

    def update(self, book_id: str, payload: UpdateBook) -> Book:
        return self.store.update(book_id, _drop_blank_text(payload.model_dump(exclude_unset=True)))

    def delete(self, book_id: str) -> Book:
        return self.store.delete(book_id)
