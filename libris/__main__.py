"""Run the API server: `python -m libris` or the `libris` console script."""

import uvicorn

from libris.config import settings


def main() -> None:
    uvicorn.run(
        "libris.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )


if __name__ == "__main__":
    main()
