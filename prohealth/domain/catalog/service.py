"""Catalog service - Business logic for browsing wellness services"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Service
from .repository import CatalogRepository
from .schemas import ServiceFilters

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = CatalogRepository()

    def list_services(self, filters: ServiceFilters) -> list[Service]:
        return self.repo.list_services(self.db, filters)

    def get_service(self, service_id: str) -> Service:
        service = self.repo.get_service_by_id(self.db, service_id)
        if not service:
            raise HTTPException(status_code=404, detail=f"Service with ID '{service_id}' not found.")
        return service

    def list_by_category(self, category: str) -> list[Service]:
        return self.repo.list_services(self.db, ServiceFilters(category=category))
