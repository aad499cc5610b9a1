class CatalogError(Exception):
    """Base class for errors raised by the catalog store and services."""

    message = "Server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class BookValidationError(CatalogError):
    message = "Bad request"


class BookNotFoundError(CatalogError):
    message = "Book not found"


class InvalidBookIdError(CatalogError):
    message = "Invalid ID"


class StoreUnavailableError(CatalogError):
    message = "Database unavailable"


class FullTextUnavailableError(CatalogError):
    message = "Full-text search is not supported by this database"
