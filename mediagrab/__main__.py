"""Run the API server: python -m mediagrab"""

import uvicorn

from mediagrab.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "mediagrab.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
