"""AI insights router - Rate limited health assistant endpoint"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import RateLimiter, RateLimitInfo, create_rate_limiter
from .gemini_client import GeminiClient
from .schemas import SymptomInsightRequest, SymptomInsightResponse
from .service import UNAVAILABLE_ERROR, InsightService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI Assistant"])

ai_rate_limit = create_rate_limiter(key_prefix="ai_insights")


def require_insight_client(request: Request) -> GeminiClient:
    client: Optional[GeminiClient] = getattr(request.app.state, "insight_client", None)
    if client is None or not client.is_available():
        logger.error("❌ GOOGLE_GEMINI_API_KEY is not configured")
        raise HTTPException(status_code=503, detail=UNAVAILABLE_ERROR)
    return client


@router.post("/symptom-insights", response_model=SymptomInsightResponse)
async def get_symptom_insights(
    body: SymptomInsightRequest,
    response: Response,
    client: GeminiClient = Depends(require_insight_client),
    user: User = Depends(get_current_user),
    rate_limit: RateLimitInfo = Depends(ai_rate_limit),
    db: Session = Depends(get_db),
):
    """Get general (non-diagnostic) information about described symptoms"""
    insight = await InsightService(db, client).get_symptom_insight(body.symptoms, user)
    response.headers.update(RateLimiter.headers(rate_limit))
    return SymptomInsightResponse(insight=insight)
