import logging
import uuid
from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .db import get_session, init_db
from .errors import BookNotFoundError, BookValidationError, CatalogError, InvalidBookIdError, StoreUnavailableError
from .models import Book, CreateBook, Envelope, ErrorEnvelope, Health, UpdateBook
from .otel import record_search
from .search import RetrievalEngine
from .service import BookService
from .store import BookStore

settings = get_settings()
logger = logging.getLogger("library_catalog.app")

ERROR_STATUS = {
    BookValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidBookIdError: status.HTTP_400_BAD_REQUEST,
    BookNotFoundError: status.HTTP_404_NOT_FOUND,
}
SERVER_ERROR_MESSAGE = "Server error"


def get_book_store(session: Session = Depends(get_session)) -> BookStore:
    return BookStore(session)


def get_book_service(store: BookStore = Depends(get_book_store)) -> BookService:
    return BookService(store)


def get_retrieval_engine(store: BookStore = Depends(get_book_store)) -> RetrievalEngine:
    return RetrievalEngine(store, limit=settings.search_limit)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        init_db()
    except StoreUnavailableError:
        logger.critical("store.unavailable", exc_info=True)
        raise
    logger.info("library.started", extra={"app": settings.app_name, "version": settings.version})
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="A small library catalog: CRUD and search over book records.",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    responses={400: {"model": ErrorEnvelope}, 404: {"model": ErrorEnvelope}, 500: {"model": ErrorEnvelope}},
)
if settings.otel_enabled:
    from .otel import configure_otel

    configure_otel(app)

if settings.cors_origin_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorEnvelope(message=message).model_dump())


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return _error(status_code, exc.message)
    logger.error("request.failed", exc_info=exc, extra={"path": request.url.path, "method": request.method})
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR_MESSAGE)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
        return _error(status.HTTP_400_BAD_REQUEST, f"Invalid {field}: {first.get('msg', 'bad value')}")
    return _error(status.HTTP_400_BAD_REQUEST, "Bad request")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("database.error", exc_info=exc, extra={"path": request.url.path, "method": request.method})
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR_MESSAGE)


router = APIRouter(prefix="/api", tags=["books"])


@router.get("/health", response_model=Health, tags=["health"])
def health() -> Health:
    return Health()


@router.get("/books", response_model=Envelope[List[Book]])
@router.get("/books/", response_model=Envelope[List[Book]], include_in_schema=False)
def list_books(service: BookService = Depends(get_book_service)) -> Envelope[List[Book]]:
    return Envelope(data=service.list())


# Must be registered before /books/{book_id} or "search" would be taken for an id.
@router.get("/books/search", response_model=Envelope[List[Book]])
def search_books(q: str = "", engine: RetrievalEngine = Depends(get_retrieval_engine)) -> Envelope[List[Book]]:
    outcome = engine.search(q)
    logger.info("search.done", extra={"tier": outcome.tier.value, "hits": len(outcome.books)})
    record_search(outcome)
    return Envelope(data=outcome.books)


@router.get("/books/{book_id}", response_model=Envelope[Book])
def get_book(book_id: str, service: BookService = Depends(get_book_service)) -> Envelope[Book]:
    return Envelope(data=service.get(book_id))


@router.post("/books", response_model=Envelope[Book], status_code=status.HTTP_201_CREATED)
@router.post("/books/", response_model=Envelope[Book], status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_book(payload: CreateBook, service: BookService = Depends(get_book_service)) -> Envelope[Book]:
    return Envelope(data=service.create(payload))


@router.put("/books/{book_id}", response_model=Envelope[Book])
def update_book(
    book_id: str, payload: UpdateBook, service: BookService = Depends(get_book_service)
) -> Envelope[Book]:
    return Envelope(data=service.update(book_id, payload))


@router.delete("/books/{book_id}", response_model=Envelope[Book])
def delete_book(book_id: str, service: BookService = Depends(get_book_service)) -> Envelope[Book]:
    return Envelope(data=service.delete(book_id))


app.include_router(router)
app.mount("/static", StaticFiles(directory=settings.static_dir, check_dir=False), name="static")


@app.get("/{full_path:path}", include_in_schema=False)
def spa_entry(full_path: str):
    if full_path == "api" or full_path.startswith("api/"):
        return _error(status.HTTP_404_NOT_FOUND, "Not found")
    index = settings.static_dir / "index.html"
    if not index.is_file():
        return _error(status.HTTP_404_NOT_FOUND, "Not found")
    return FileResponse(index)


# Registered first so it sits innermost: the other middlewares still decorate the 500.
@app.middleware("http")
async def unexpected_error_middleware(request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:  # noqa: BLE001
        logger.error("request.crashed", exc_info=exc, extra={"path": request.url.path, "method": request.method})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR_MESSAGE)


@app.middleware("http")
async def security_headers(request, call_next):
    if settings.require_https:
        forwarded_proto = request.headers.get("x-forwarded-proto", "")
        if forwarded_proto and forwarded_proto.lower() != "https":
            return _error(status.HTTP_400_BAD_REQUEST, "HTTPS required")
        if request.url.scheme != "https" and not forwarded_proto:
            return _error(status.HTTP_400_BAD_REQUEST, "HTTPS required")

    response = await call_next(request)
    response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    response.headers.setdefault(
        "Content-Security-Policy",
        "default-src 'self'; img-src 'self' data:; object-src 'none'; frame-ancestors 'none'; base-uri 'none'",
    )
    response.headers.setdefault("Cross-Origin-Resource-Policy", "same-origin")
    return response


request_logger = logging.getLogger("library_catalog.requests")


@app.middleware("http")
async def request_logging_middleware(request, call_next):
    request_logger.info("request.start", extra={"path": request.url.path, "method": request.method})
    response = await call_next(request)
    request_logger.info(
        "request.end",
        extra={"path": request.url.path, "method": request.method, "status": response.status_code},
    )
    return response


@app.middleware("http")
async def request_id_middleware(request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response
