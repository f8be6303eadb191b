from __future__ import annotations

import os

import uvicorn

from tutor.config import get_settings


def main() -> None:
    port = int(os.environ.get("PORT", "8080"))
    uvicorn.run("tutor.main:app", host="0.0.0.0", port=port, log_level=get_settings().LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
