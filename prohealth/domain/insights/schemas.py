"""AI insight schemas"""

from typing import Any, Optional

from pydantic import BaseModel


class SymptomInsightRequest(BaseModel):
    # Checked by the service so rejected input is still counted and logged
    symptoms: Optional[Any] = None


class SymptomInsightResponse(BaseModel):
    insight: str
