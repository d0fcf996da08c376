"""Catalog repository - Database operations for wellness services"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Service
from .schemas import ServiceFilters

SORT_COLUMNS = {
    "price": Service.price,
    "name": Service.name,
    "created_at": Service.created_at,
}


class CatalogRepository:
    """Repository for service catalog queries"""

    @staticmethod
    def list_services(db: Session, filters: ServiceFilters) -> list[Service]:
        query = db.query(Service)

        if filters.category:
            query = query.filter(Service.category == filters.category)

        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.filter(or_(Service.name.ilike(pattern), Service.description.ilike(pattern)))

        if filters.sort_by:
            column = SORT_COLUMNS[filters.sort_by]
            query = query.order_by(column.desc() if filters.sort_order == "desc" else column.asc())
        else:
            query = query.order_by(Service.created_at.desc())

        return query.all()

    @staticmethod
    def get_service_by_id(db: Session, service_id: str) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()
