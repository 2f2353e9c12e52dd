from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from lineage_api.core.config import settings
from lineage_api.db.session import get_db
from lineage_api.schemas.lineage import ChildrenResponse, LineageNode, LineageResponse, StockRemainingOut
from lineage_api.services.lineage import build_lineage_for_qr, resolve_ancestors, resolve_children, trace_serial
from lineage_api.services.production import get_production_record, parse_scan_input, stock_remaining

router = APIRouter()


@router.get("/serial/{serial_number}/lineage", response_model=LineageResponse)
def get_lineage(serial_number: str, db: Session = Depends(get_db)) -> LineageResponse:
    return trace_serial(db, serial_number)


@router.get("/serial/{serial_number}/ancestors", response_model=LineageNode)
def get_ancestors(
    serial_number: str,
    max_depth: int = Query(default=settings.trace_ancestor_max_depth, ge=1, le=10),
    db: Session = Depends(get_db),
) -> LineageNode:
    node = resolve_ancestors(db, serial_number, max_depth=max_depth)
    if node is None:
        raise HTTPException(status_code=404, detail="No production record found for serial number")
    return node


@router.get("/serial/{serial_number}/children", response_model=ChildrenResponse)
def get_children(
    serial_number: str,
    max_depth: int = Query(default=settings.trace_child_max_depth, ge=1, le=5),
    db: Session = Depends(get_db),
) -> ChildrenResponse:
    children = resolve_children(db, serial_number, max_depth=max_depth)
    return ChildrenResponse(serial_number=serial_number, children=children)


@router.get("/serial/{serial_number}/compact")
def get_compact_lineage(serial_number: str, db: Session = Depends(get_db)) -> dict | None:
    compact = build_lineage_for_qr(db, serial_number)
    if compact is None:
        return None
    return compact.model_dump(exclude_none=True)


@router.get("/serial/{serial_number}/record")
def get_record(serial_number: str, db: Session = Depends(get_db)) -> dict:
    record = get_production_record(db, serial_number)
    if record is None:
        raise HTTPException(status_code=404, detail="No production record found for serial number")
    return record


@router.get("/serial/{serial_number}/stock", response_model=StockRemainingOut)
def get_stock(serial_number: str, db: Session = Depends(get_db)) -> dict:
    summary = stock_remaining(db, serial_number)
    if summary is None:
        raise HTTPException(status_code=404, detail="No production record found for serial number")
    return summary


@router.get("/scan", response_model=LineageResponse)
def scan_lookup(payload: str = Query(max_length=4096), db: Session = Depends(get_db)) -> LineageResponse:
    serial_number = parse_scan_input(payload)
    if serial_number is None:
        raise HTTPException(status_code=422, detail="Scan payload is empty")
    return trace_serial(db, serial_number)
