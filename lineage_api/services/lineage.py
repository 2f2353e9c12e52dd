"""Production lineage walks over serial-numbered units.

A production record may consume portions of earlier units (its parents) and
may itself be consumed by later records (its children).  Ancestor walks are
recursive and bounded by a depth ceiling and a path guard; child lookups are a
single level.  Unknown serials yield absence, while database failures raise
``TraceStoreError`` and abort the whole walk.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lineage_api.core.config import settings
from lineage_api.core.errors import TraceStoreError
from lineage_api.schemas.lineage import CompactLineage, LineageNode, LineageResponse

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = """
    pr.id, pr.serial_number, pr.weight_kg, pr.length_yards,
    pr.production_date, pr.production_time,
    i.product_name, i.product_code, i.item_type,
    p.full_name AS operator_name,
    m.machine_name, m.machine_code
"""

_EVENT_JOINS = """
    JOIN items i ON i.id = pr.item_id
    LEFT JOIN profiles p ON p.id = pr.operator_id
    LEFT JOIN machines m ON m.id = pr.machine_id
"""

_EVENT_BY_SERIAL = text(
    f"""
    SELECT {_EVENT_COLUMNS}
    FROM production_records pr
    {_EVENT_JOINS}
    WHERE pr.serial_number = :serial_number
    """
)

_INPUTS_BY_EVENT = text(
    """
    SELECT c.consumed_serial_number, c.consumed_weight_kg, c.consumed_length_yards
    FROM raw_material_consumption c
    WHERE c.production_record_id = :production_record_id
    ORDER BY c.created_at, c.id
    """
)

_CONSUMERS_BY_SERIAL = text(
    f"""
    SELECT {_EVENT_COLUMNS},
           c.consumed_weight_kg, c.consumed_length_yards
    FROM raw_material_consumption c
    JOIN production_records pr ON pr.id = c.production_record_id
    {_EVENT_JOINS}
    WHERE c.consumed_serial_number = :serial_number
    ORDER BY c.created_at, c.id
    """
)


def fetch_rows(db: Session, query, params: dict, *, serial_number: str) -> Sequence[Mapping]:
    try:
        return db.execute(query, params).mappings().all()
    except SQLAlchemyError as exc:
        raise TraceStoreError(
            f"Traceability lookup failed for serial {serial_number}",
            serial_number=serial_number,
        ) from exc


def as_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)


def as_text(value: object) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _node_from_row(row: Mapping, edge: Mapping | None = None) -> LineageNode:
    return LineageNode(
        id=str(row["id"]),
        serial_number=row["serial_number"],
        item_name=row["product_name"] or "Unknown",
        item_code=row["product_code"] or "N/A",
        item_type=row["item_type"] or "unknown",
        weight_kg=as_float(row["weight_kg"]) or 0.0,
        length_yards=as_float(row["length_yards"]),
        production_date=as_text(row["production_date"]),
        production_time=as_text(row["production_time"]),
        operator_name=row["operator_name"] or "Unknown",
        machine_name=row["machine_name"] or "Unknown",
        machine_code=row["machine_code"] or "N/A",
        consumed_weight_kg=as_float(edge["consumed_weight_kg"]) if edge else None,
        consumed_length_yards=as_float(edge["consumed_length_yards"]) if edge else None,
    )


def find_production_event(db: Session, serial_number: str) -> Mapping | None:
    rows = fetch_rows(db, _EVENT_BY_SERIAL, {"serial_number": serial_number}, serial_number=serial_number)
    return rows[0] if rows else None


def find_consumed_inputs(db: Session, production_record_id: object, *, serial_number: str) -> Sequence[Mapping]:
    return fetch_rows(
        db,
        _INPUTS_BY_EVENT,
        {"production_record_id": production_record_id},
        serial_number=serial_number,
    )


def _walk_ancestors(
    db: Session,
    serial_number: str,
    *,
    depth: int,
    max_depth: int,
    path: frozenset[str],
    edge: Mapping | None = None,
) -> LineageNode | None:
    if depth >= max_depth:
        return None

    event = find_production_event(db, serial_number)
    if event is None:
        logger.debug("No production record for serial=%s at depth=%d", serial_number, depth)
        return None

    node = _node_from_row(event, edge)
    on_path = path | {serial_number}
    inputs = []
    for consumed in find_consumed_inputs(db, event["id"], serial_number=serial_number):
        if consumed["consumed_serial_number"] in on_path:
            logger.warning(
                "Skipping cyclic consumption %s -> %s", serial_number, consumed["consumed_serial_number"]
            )
            continue
        inputs.append(consumed)
    if not inputs:
        return node

    if depth + 1 >= max_depth:
        node.truncated = True
        logger.info(
            "Lineage walk stopped at serial=%s depth=%d; %d input(s) not resolved",
            serial_number,
            depth,
            len(inputs),
        )
        return node

    for consumed in inputs:
        parent = _walk_ancestors(
            db,
            consumed["consumed_serial_number"],
            depth=depth + 1,
            max_depth=max_depth,
            path=on_path,
            edge=consumed,
        )
        if parent is not None:
            node.parents.append(parent)
    return node


def resolve_ancestors(db: Session, serial_number: str, max_depth: int | None = None) -> LineageNode | None:
    """Resolve the tree of units consumed, directly or transitively, to make ``serial_number``.

    Returns ``None`` when the serial has no production record.  Parents that
    cannot be resolved are left out, so a node may list fewer parents than it
    has consumption records.
    """
    if max_depth is None:
        max_depth = settings.trace_ancestor_max_depth
    return _walk_ancestors(db, serial_number, depth=0, max_depth=max_depth, path=frozenset())


def resolve_children(db: Session, serial_number: str, max_depth: int | None = None) -> list[LineageNode]:
    """Production records that consumed ``serial_number``, one per consumption record.

    Children are one level deep; their ``parents`` lists stay empty.
    """
    if max_depth is None:
        max_depth = settings.trace_child_max_depth
    if max_depth < 1:
        return []

    rows = fetch_rows(db, _CONSUMERS_BY_SERIAL, {"serial_number": serial_number}, serial_number=serial_number)
    return [_node_from_row(row, row) for row in rows]


def compact_lineage(node: LineageNode) -> CompactLineage:
    return CompactLineage(
        serial=node.serial_number,
        code=node.item_code,
        type=node.item_type,
        weight=node.weight_kg,
        length=node.length_yards or None,
        date=node.production_date,
        parents=[compact_lineage(parent) for parent in node.parents] or None,
    )


def build_lineage_for_qr(db: Session, serial_number: str) -> CompactLineage | None:
    node = resolve_ancestors(db, serial_number)
    if node is None:
        return None
    return compact_lineage(node)


def trace_serial(db: Session, serial_number: str) -> LineageResponse:
    ancestors = resolve_ancestors(db, serial_number)
    children = resolve_children(db, serial_number)
    return LineageResponse(serial_number=serial_number, ancestors=ancestors, children=children)
