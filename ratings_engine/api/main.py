#!/usr/bin/env python3
"""
FastAPI app for the Teacher Ratings Engine

Exposes:
- Rating submission (one counted rating per submitter per teacher per week)
- Weekly and all-time teacher rating views
- Live and snapshotted leaderboards
- The weekly snapshot trigger for the scheduler
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ratings_engine import __version__
from ratings_engine.api.routes import leaderboard, ratings, snapshots, teachers
from ratings_engine.config import get_settings
from ratings_engine.errors import RatingsEngineError
from ratings_engine.utilities.common import LOG_FORMAT

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format=LOG_FORMAT,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Teacher Ratings API")
    yield
    logger.info("Shutting down Teacher Ratings API")


app = FastAPI(
    title="Teacher Ratings API",
    description="Weekly-deduplicated teacher ratings with live and snapshotted leaderboards",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RatingsEngineError)
async def engine_error_handler(request: Request, exc: RatingsEngineError):
    """Map engine errors to their HTTP status with an {"error": ...} body."""
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies/params are reported like engine validation errors."""
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


# Include routers
app.include_router(ratings.router, prefix="/ratings", tags=["ratings"])
app.include_router(teachers.router, prefix="/teachers", tags=["teachers"])
app.include_router(leaderboard.router, prefix="/leaderboard", tags=["leaderboard"])
app.include_router(snapshots.router, prefix="/snapshots", tags=["snapshots"])


@app.get("/")
async def root():
    """API documentation."""
    return {
        "name": "Teacher Ratings API",
        "version": __version__,
        "endpoints": {
            "POST /ratings": "Submit or update this week's rating for a teacher",
            "GET /ratings/status": "Check whether a submitter rated a teacher this week",
            "GET /teachers/{teacher_id}/rating": "Weekly or all-time rating view",
            "GET /leaderboard": "Ranked teachers (weekly live, weekly snapshot, all-time)",
            "GET /leaderboard/weeks": "Recent weeks for the week picker",
            "POST /snapshots": "Snapshot a finished week (scheduler trigger)",
            "GET /snapshots": "List snapshotted weeks",
            "GET /snapshots/{week_start}": "Read a stored week snapshot",
        },
        "documentation": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
