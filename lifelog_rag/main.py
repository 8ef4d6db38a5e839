"""
FastAPI application entry point.
Lifelog RAG query service.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lifelog_rag.api import router
from lifelog_rag.config import ensure_directories, settings
from lifelog_rag.llm import get_llm
from lifelog_rag.rag import FaissVectorIndex, RAGQueryEngine, RecordIngester, SentenceTransformerEmbedder

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the engine and its collaborators once per process."""
    configure_logging()
    logger.info("🚀 Starting Lifelog RAG service...")

    ensure_directories()
    logger.info(f"📁 Vector store directory: {settings.VECTORSTORE_DIR}")

    embedder = SentenceTransformerEmbedder()
    index = FaissVectorIndex()
    llm = get_llm()
    app.state.engine = RAGQueryEngine(embedder=embedder, index=index, llm=llm)
    app.state.ingester = RecordIngester(embedder=embedder, index=index)

    logger.info("✅ Service ready")
    yield

    logger.info("👋 Shutting down Lifelog RAG service...")
    await llm.aclose()


app = FastAPI(
    title="Lifelog RAG",
    description="""
## Personal Data Question Answering

Answers questions about a user's own health, location, voice note, photo
and diary data with retrieval-augmented generation.

### How It Works:
1. `POST /records/{user_id}` indexes personal data records
2. `POST /chat` embeds the question, retrieves the user's most relevant
   records, and asks the language model for a grounded answer
3. Every answer lists the records that grounded it (`contextUsed`)

If nothing relevant is found, the model is told so explicitly and asks
for more information instead of guessing.
    """,
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

app.include_router(router)


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with service info."""
    return {
        "name": "Lifelog RAG",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lifelog_rag.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENV == "development",
    )
