import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from dream_journal.containers import dream_statistics
from dream_journal.errors import EntryNotFound
from dream_journal.models import COMMON_EMOTIONS
from dream_journal.store import EntryStore, FileStorage
from dream_journal.views import get_store, router as entries_router

from .core.config import Settings
from .core.dream_analyzer import ChatRequest, DreamAnalyzer, UpstreamError
from .core.symbol_extractor import find_relevant_keywords, generate_offline_analysis

logging.basicConfig(
    level=Settings.from_env().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Global service instance
analyzer: Optional[DreamAnalyzer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global analyzer
    settings = Settings.from_env()
    if settings.groq_api_key is None:
        raise ValueError("GROQ_API_KEY environment variable is required")

    analyzer = DreamAnalyzer(settings)
    store = EntryStore(FileStorage(settings.storage_dir), settings.storage_key)
    store.load()
    app.state.store = store
    logger.info("Dream analysis service ready (model %s)", settings.chat_model)
    yield
    analyzer = None
    app.state.store = None


app = FastAPI(
    title="Dream Journal Analysis API",
    description="Dream journal storage and conversational dream analysis",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(entries_router)


# Dependency to get the analyzer
def get_analyzer() -> DreamAnalyzer:
    if analyzer is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return analyzer


@app.get("/")
async def root():
    return {"message": "Dream Journal Analysis API", "version": "1.0.0"}


@app.post("/api/chat")
async def chat(request: Request, dream_analyzer: DreamAnalyzer = Depends(get_analyzer)):
    """Continue a dream analysis conversation.

    Body: ``{"messages": [{"role": "user" | "assistant", "content": str}, ...]}``.
    """
    try:
        body = ChatRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.info("Rejected malformed chat request: %s", type(e).__name__)
        return JSONResponse(
            {"error": 'Expected a JSON body {"messages": [{"role": ..., "content": ...}, ...]}'},
            status_code=400,
        )

    try:
        content = await dream_analyzer.chat(body.messages)
    except UpstreamError:
        logger.exception("Error in dream analysis")
        return JSONResponse({"error": "Failed to analyze dream"}, status_code=500)

    return {"response": {"role": "assistant", "content": content}}


@app.get("/entries/{entry_id}/symbols")
async def entry_symbols(entry_id: str, store: EntryStore = Depends(get_store)):
    """Keyword reflection for an entry, computed without the completion provider."""
    try:
        entry = store.get(entry_id)
    except EntryNotFound:
        raise HTTPException(status_code=404, detail="Not found.")
    return {
        "keywords": find_relevant_keywords(entry.content),
        "analysis": generate_offline_analysis(entry.content),
    }


@app.get("/stats")
async def stats(store: EntryStore = Depends(get_store)):
    """Emotion, lucidity and mood numbers for the insights dashboard."""
    return dream_statistics(store.entries)


@app.get("/emotions", response_model=List[str])
async def get_emotions():
    """Emotions offered when recording a dream."""
    return list(COMMON_EMOTIONS)


# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "dream_api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=True,
        log_level="info",
    )
