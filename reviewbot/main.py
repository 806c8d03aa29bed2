import sys
from typing import Any

import fastapi
import uvicorn

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from reviewbot.queue import configure_review_handler, pending_jobs, shutdown_queue
from reviewbot.services.review_processor import ReviewProcessor
from reviewbot.webhook import router as webhook_router


app = FastAPI(title="AI Code Reviewer")

app.include_router(webhook_router, tags=["webhook"])


@app.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "AI Code Reviewer Bot is running."


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "pending_jobs": pending_jobs(),
        "environment": {
            "python version": sys.version,
            "fastapi version": fastapi.__version__,
            "uvicorn version": uvicorn.__version__,
        },
    }


@app.on_event("startup")
async def _configure_queue_worker() -> None:
    configure_review_handler(ReviewProcessor())


@app.on_event("shutdown")
async def _shutdown_queue_worker() -> None:
    await shutdown_queue()
