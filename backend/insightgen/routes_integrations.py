"""
Integrations page: data source registry routes.
Every mutation answers with the full, re-fetched source list.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from insightgen import data_sources
from insightgen.data_sources import DataSourceCreate, DataSourceValidationError
from insightgen.database import SessionLocal
from insightgen.entity_store import EntityNotFound
from insightgen.helpers import parse_uuid

logger = logging.getLogger(__name__)
router = APIRouter()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@router.get("/data-sources")
def list_data_sources(db: Session = Depends(get_db)):
    return data_sources.list_sources(db)


@router.post("/data-sources", status_code=201)
def create_data_source(req: DataSourceCreate, db: Session = Depends(get_db)):
    try:
        return data_sources.create_source(db, req)
    except DataSourceValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/data-sources/{source_id}")
def delete_data_source(source_id: str, db: Session = Depends(get_db)):
    try:
        return data_sources.delete_source(db, parse_uuid(source_id, "source_id"))
    except EntityNotFound:
        raise HTTPException(status_code=404, detail="Data source not found")


@router.post("/data-sources/{source_id}/sync")
def sync_data_source(source_id: str, db: Session = Depends(get_db)):
    try:
        return data_sources.sync_source(db, parse_uuid(source_id, "source_id"))
    except EntityNotFound:
        raise HTTPException(status_code=404, detail="Data source not found")


@router.post("/data-sources/{source_id}/test")
def test_data_source(source_id: str, db: Session = Depends(get_db)):
    try:
        return data_sources.probe_source(db, parse_uuid(source_id, "source_id"))
    except EntityNotFound:
        raise HTTPException(status_code=404, detail="Data source not found")
    except DataSourceValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
