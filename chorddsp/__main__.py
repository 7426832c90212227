"""Run the HTTP service: ``python -m chorddsp`` or the ``chord-dsp`` script."""
import structlog
import uvicorn

from chorddsp.config import settings

log = structlog.get_logger()


def main() -> None:
    log.info("serving", host=settings.API_HOST, port=settings.API_PORT, env=settings.APP_ENV)
    uvicorn.run(
        "chorddsp.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
