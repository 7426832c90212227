from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chorddsp import __version__
from chorddsp.api import features, onset
from chorddsp.config import configure_logging, settings
from chorddsp.core.engine import get_engine

configure_logging(settings.LOG_LEVEL)
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("startup", env=settings.APP_ENV, version=__version__)
    engine = get_engine()
    log.info("startup_complete", backend=engine.backend.name)
    yield
    engine.close()
    log.info("shutdown")


app = FastAPI(
    title="ChordDSP",
    description="Spectral features for chord and key recognition: resampling, log-mel spectrogram, chromagram, onsets",
    version=__version__,
    lifespan=lifespan,
)

# CORS_ORIGINS may arrive as a comma-separated string from the environment
cors_origins = settings.CORS_ORIGINS
if isinstance(cors_origins, str):
    cors_origins = [o.strip() for o in cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(features.router, prefix="/api/v1/features", tags=["Features"])
app.include_router(onset.router, prefix="/api/v1/onset", tags=["Onset"])


@app.get("/health", tags=["System"])
async def health():
    return {"status": "ok", "version": __version__, "env": settings.APP_ENV}


@app.get("/", tags=["System"])
async def root():
    return {"name": "ChordDSP API", "docs": "/docs", "health": "/health"}
