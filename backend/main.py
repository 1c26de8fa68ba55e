"""
Marginalia API entry point.

Serves annotation capture, rendering and category management for
paragraph-structured documents. Run with ``python main.py`` or
``uvicorn main:app``.
"""

import logging
import os
import sys
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marginalia.routers import annotations, categories
from marginalia.services.anchoring import MAX_HIGHLIGHT_PARAGRAPHS
from marginalia.services.database_service import db_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Marginalia Annotation API", version="1.0.0")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = datetime.now()
    route = f"{request.method} {request.url.path}"

    try:
        response = await call_next(request)
    except Exception as e:
        elapsed = (datetime.now() - started).total_seconds()
        logger.error(f"{route} failed after {elapsed:.3f}s: {e}", exc_info=True)
        return JSONResponse(
            status_code=500, content={"detail": f"Internal server error: {str(e)}"}
        )

    elapsed = (datetime.now() - started).total_seconds()
    logger.info(f"{route} -> {response.status_code} ({elapsed:.3f}s)")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def read_root():
    """Service banner with the highlight size limit clients should enforce."""
    return {
        "message": "Marginalia Annotation API",
        "status": "running",
        "max_highlight_paragraphs": MAX_HIGHLIGHT_PARAGRAPHS,
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


app.include_router(annotations.router)
app.include_router(categories.router)

if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Marginalia with database %s", db_service.db_path)
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("MARGINALIA_PORT", "8000")))
