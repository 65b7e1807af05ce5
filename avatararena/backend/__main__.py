"""Run the Avatar Arena API under uvicorn."""

from __future__ import annotations

import logging

import uvicorn

from avatararena.backend.config import load_settings


def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("avatararena.backend.api:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
