"""Run the FastAPI app for the DM assistant."""

from __future__ import annotations

import os

import uvicorn
from fastapi import FastAPI

from src.routers import chat_router
from src.session_orchestrator.config import configure_logging

configure_logging(os.getenv("DMCLI_LOG_LEVEL", "INFO"), os.getenv("DMCLI_LOG_FILE") or None)

app = FastAPI(title="DM Assistant", version="0.1.0")
app.include_router(chat_router)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
