from __future__ import annotations

import uvicorn

from auth_api.shared.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "auth_api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
