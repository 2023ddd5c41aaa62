# api.py
"""
FastAPI wrapper for the diff review pipeline.
Exposes the full two-tier review and the static-analysis stage as a REST API.
"""

import logging
from functools import lru_cache

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from diffreview import __version__
from diffreview.config import load_settings
from diffreview.diff_parser import reconstruct_files
from diffreview.models import MultiModelResult, ReviewRequest, StaticAnalysisResult
from diffreview.reviewer import DeepReviewError, MultiModelReviewer

load_dotenv()
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Diff Review",
    description="Static analysis plus two-tier LLM review of unified diffs",
    version=__version__,
)


@lru_cache(maxsize=1)
def get_reviewer() -> MultiModelReviewer:
    """Process-wide reviewer, built on first use from the environment."""
    return MultiModelReviewer.from_settings(load_settings())


# ── Request / Response models ───────────────────────────────────────────────

class StaticAnalysisRequest(BaseModel):
    diff: str


class HealthResponse(BaseModel):
    status: str
    version: str


# ── Endpoints ───────────────────────────────────────────────────────────────

@app.get("/health", response_model=HealthResponse)
def health():
    return {"status": "ok", "version": __version__}


@app.post("/review")
async def review(request: ReviewRequest, reviewer: MultiModelReviewer = Depends(get_reviewer)):
    if not request.diff.strip():
        raise HTTPException(status_code=400, detail="diff is required")

    try:
        result: MultiModelResult = await reviewer.review_request(request)
    except DeepReviewError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return result.model_dump(by_alias=True, mode="json")


@app.post("/static-analysis")
async def static_analysis(request: StaticAnalysisRequest, reviewer: MultiModelReviewer = Depends(get_reviewer)):
    if not request.diff.strip():
        raise HTTPException(status_code=400, detail="diff is required")

    files = reconstruct_files(request.diff)
    result: StaticAnalysisResult = await reviewer.static_analyzer.analyze(files, request.diff)
    return result.model_dump(by_alias=True, mode="json")
