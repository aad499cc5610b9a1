import uvicorn

from .config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("library_catalog.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
