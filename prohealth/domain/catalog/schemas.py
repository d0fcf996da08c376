"""Catalog schemas - Pydantic models for wellness services"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class ServiceFilters(BaseModel):
    category: Optional[str] = None
    search: Optional[str] = None
    sort_by: Optional[Literal["price", "name", "created_at"]] = None
    sort_order: Literal["asc", "desc"] = "asc"


class ServiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    price: float
    duration: Optional[int] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
