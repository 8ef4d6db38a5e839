"""
FastAPI routes exposing the query engine.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from lifelog_rag.assistant import answer_question
from lifelog_rag.errors import RAGError
from lifelog_rag.intent import analyze_query
from lifelog_rag.models import DataType, Message
from lifelog_rag.rag import RAGQueryEngine, RecordIngester

logger = logging.getLogger(__name__)

router = APIRouter()


# === Request/Response Models ===

class HistoryMessage(BaseModel):
    """One prior conversation turn, oldest first."""
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str
    timestamp: Optional[str] = None


class ChatRequest(BaseModel):
    """Chat request model."""
    user_id: str = Field(..., min_length=1, description="Owner of the personal data")
    message: str = Field(..., min_length=1, max_length=5000, description="User question")
    history: List[HistoryMessage] = Field(default_factory=list)
    data_type: Optional[DataType] = Field(default=None, description="Force a data-type scope")
    activity: Optional[str] = Field(default=None, description="Force an activity scope")


class ContextReferenceModel(BaseModel):
    id: str
    score: float
    type: str
    snippet: str


class ChatResponse(BaseModel):
    """
    Chat response model.

    Fields:
        response: Generated answer
        contextUsed: Personal data that grounded the answer, in the order the model saw it
        analysis: Router hints used to pick the retrieval scope
        timings: Per-stage durations in milliseconds
    """
    response: str
    contextUsed: List[ContextReferenceModel]
    analysis: Dict[str, Any]
    timings: Dict[str, float]


class AnalyzeRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)


class RecordModel(BaseModel):
    """A personal data record to index."""
    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    type: DataType = DataType.TEXT
    activity: Optional[str] = None
    date: Optional[str] = None


class IngestRequest(BaseModel):
    records: List[RecordModel]


class IngestResponse(BaseModel):
    user_id: str
    processed: List[str]
    errors: List[Dict[str, str]]
    total_chunks: int
    record_count: int


# === Dependencies ===

def get_engine(request: Request) -> RAGQueryEngine:
    return request.app.state.engine


def get_ingester(request: Request) -> RecordIngester:
    return request.app.state.ingester


# === Chat ===

@router.post("/chat", response_model=ChatResponse, tags=["Chat"])
async def chat(request: ChatRequest, engine: RAGQueryEngine = Depends(get_engine)):
    """
    Answer a question about the user's personal data.

    Retrieval is scoped by the router's hints unless the request forces
    a data type or activity. Upstream failures return 502 with the failing
    stage and upstream detail.
    """
    history = [
        Message(role=m.role, content=m.content, timestamp=m.timestamp) if m.timestamp
        else Message(role=m.role, content=m.content)
        for m in request.history
    ]

    try:
        result, analysis = await answer_question(
            engine,
            request.message,
            request.user_id,
            history=history,
            data_type=request.data_type,
            activity=request.activity,
        )
    except RAGError as e:
        raise HTTPException(status_code=502, detail=e.to_dict())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    payload = result.to_dict()
    return ChatResponse(
        response=payload["response"],
        contextUsed=payload["contextUsed"],
        analysis=analysis.to_dict(),
        timings=payload["timings"],
    )


@router.post("/analyze", tags=["Chat"])
def analyze(request: AnalyzeRequest):
    """Show how a question would be routed."""
    return analyze_query(request.message).to_dict()


# === Records ===

@router.post("/records/{user_id}", response_model=IngestResponse, tags=["Records"])
async def ingest(user_id: str, request: IngestRequest, ingester: RecordIngester = Depends(get_ingester)):
    """Index personal data records for a user."""
    records = [r.model_dump(exclude_none=True, mode="json") for r in request.records]
    try:
        result = await ingester.ingest(user_id, records)
    except RAGError as e:
        raise HTTPException(status_code=502, detail=e.to_dict())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return IngestResponse(**result)


# === Metrics & Health ===

@router.get("/metrics", tags=["Monitoring"])
def get_query_metrics(engine: RAGQueryEngine = Depends(get_engine)):
    """Get query metrics."""
    return engine.metrics.get_metrics()


@router.get("/health", tags=["Monitoring"])
def health_check(engine: RAGQueryEngine = Depends(get_engine)):
    """Health check endpoint."""
    providers = getattr(engine.llm, "providers", None)
    llm_status = "configured" if providers is None or providers else "not_configured"
    return {"status": "healthy", "llm": llm_status}
