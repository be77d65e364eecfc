from __future__ import annotations

import uvicorn

from .settings import settings


def main() -> None:
    # Logging is configured by create_app; keep uvicorn from installing its own.
    uvicorn.run("catalog.main:app", host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
