from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")

_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Book(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    title: str = Field(min_length=1, max_length=200)
    author: str = Field(min_length=1, max_length=200)
    genre: str | None = None
    available_copies: int = 1
    isbn: str | None = None
    published_year: int | None = None
    created_at: datetime


def _clean_text(value: Any) -> Any:
    # Numbers are accepted as text, e.g. a title of 1984; booleans are not.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    return value.strip() if isinstance(value, str) else value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CreateBook(BaseModel):
    """Body of ``POST /api/books``.

    Title and author may arrive empty here; the service rejects them after
    trimming so the client gets the catalog's own message instead of a
    schema error.
    """

    model_config = _camel

    title: str | None = Field(default=None, max_length=200)
    author: str | None = Field(default=None, max_length=200)
    genre: str | None = Field(default=None, max_length=100)
    available_copies: int = Field(default=1, ge=0)
    isbn: str | None = Field(default=None, max_length=20)
    published_year: int | None = None

    @field_validator("title", "author", "genre", "isbn", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _clean_text(value)

    @field_validator("available_copies", mode="before")
    @classmethod
    def _default_copies(cls, value: Any) -> Any:
        # Absent or falsy counts mean "one copy".
        if value is None or value == "" or value is False or value == 0:
            return 1
        return value

    @field_validator("published_year", mode="before")
    @classmethod
    def _optional_year(cls, value: Any) -> Any:
        if not value:
            return None
        return _blank_to_none(value)


class UpdateBook(BaseModel):
    model_config = _camel

    title: str | None = Field(default=None, max_length=200)
    author: str | None = Field(default=None, max_length=200)
    genre: str | None = Field(default=None, max_length=100)
    available_copies: int | None = Field(default=None, ge=0)
    isbn: str | None = Field(default=None, max_length=20)
    published_year: int | None = None

    @field_validator("title", "author", "genre", "isbn", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _clean_text(value)

    @field_validator("published_year", mode="before")
    @classmethod
    def _optional_year(cls, value: Any) -> Any:
        return _blank_to_none(value)


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str


class Health(BaseModel):
    status: str = "ok"
