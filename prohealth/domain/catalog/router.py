"""Catalog router - Public endpoints for wellness services"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .schemas import ServiceFilters, ServiceResponse
from .service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db)


@router.get("", response_model=list[ServiceResponse])
async def list_services(
    category: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=200),
    sort_by: Optional[Literal["price", "name", "created_at"]] = None,
    sort_order: Literal["asc", "desc"] = "asc",
    service: CatalogService = Depends(get_catalog_service),
):
    """List services, newest first unless a sort is requested"""
    filters = ServiceFilters(
        category=category, search=search, sort_by=sort_by, sort_order=sort_order
    )
    return service.list_services(filters)


@router.get("/category/{category}", response_model=list[ServiceResponse])
async def list_services_by_category(
    category: str,
    service: CatalogService = Depends(get_catalog_service),
):
    return service.list_by_category(category)


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: str,
    service: CatalogService = Depends(get_catalog_service),
):
    return service.get_service(service_id)
