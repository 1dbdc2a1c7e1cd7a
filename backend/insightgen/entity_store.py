"""
Generic record CRUD over one SQLAlchemy model.

Mirrors the entity-store contract the pages were written against:
list(order, limit) / filter(**fields) / get / create / update / delete.
Order specs use the "-created_date" convention (leading "-" = descending).
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class EntityNotFound(Exception):
    pass


def coerce_uuid(value: Any) -> Optional[UUID]:
    """Parse an id into a UUID; returns None for anything unparseable."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


class EntityStore(Generic[ModelT]):
    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model

    def _order_clause(self, order: Optional[str]):
        if not order:
            return None
        column = getattr(self.model, order.lstrip("-"))
        return column.desc() if order.startswith("-") else column.asc()

    def list(self, order: Optional[str] = "-created_date", limit: Optional[int] = None) -> List[ModelT]:
        q = self.db.query(self.model)
        clause = self._order_clause(order)
        if clause is not None:
            q = q.order_by(clause)
        if limit:
            q = q.limit(limit)
        return q.all()

    def filter(self, **fields) -> List[ModelT]:
        q = self.db.query(self.model)
        for name, value in fields.items():
            if name == "id":
                value = coerce_uuid(value)
                if value is None:
                    return []
            q = q.filter(getattr(self.model, name) == value)
        return q.all()

    def get(self, record_id: Any) -> Optional[ModelT]:
        rows = self.filter(id=record_id)
        return rows[0] if rows else None

    def create(self, fields: Dict[str, Any]) -> ModelT:
        record = self.model(**fields)
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Created {self.model.__tablename__} record {record.id}")
        return record

    def update(self, record_id: Any, fields: Dict[str, Any]) -> ModelT:
        record = self.get(record_id)
        if record is None:
            raise EntityNotFound(f"{self.model.__tablename__} {record_id} not found")
        for name, value in fields.items():
            setattr(record, name, value)
        self.db.commit()
        self.db.refresh(record)
        return record

    def delete(self, record_id: Any) -> None:
        record = self.get(record_id)
        if record is None:
            raise EntityNotFound(f"{self.model.__tablename__} {record_id} not found")
        self.db.delete(record)
        self.db.commit()
        logger.info(f"Deleted {self.model.__tablename__} record {record_id}")
