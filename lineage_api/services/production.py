from __future__ import annotations

import json

from sqlalchemy import text
from sqlalchemy.orm import Session

from lineage_api.services.lineage import as_float, as_text, fetch_rows, find_production_event

# Quantities below this are treated as fully consumed.
_STOCK_EPSILON = 0.01


def parse_scan_input(raw: str | None) -> str | None:
    """Return the serial number carried by a typed value or a scanned QR payload."""
    if raw is None:
        return None
    trimmed = raw.strip()
    if not trimmed:
        return None
    try:
        parsed = json.loads(trimmed)
    except json.JSONDecodeError:
        return trimmed
    if isinstance(parsed, dict) and isinstance(parsed.get("serial"), str) and parsed["serial"].strip():
        return parsed["serial"].strip()
    return trimmed


def get_production_record(db: Session, serial_number: str) -> dict | None:
    event = find_production_event(db, serial_number)
    if event is None:
        return None
    return {
        "id": str(event["id"]),
        "serial_number": event["serial_number"],
        "item": {
            "product_name": event["product_name"],
            "product_code": event["product_code"],
            "item_type": event["item_type"],
        },
        "operator_name": event["operator_name"],
        "machine": (
            {"machine_name": event["machine_name"], "machine_code": event["machine_code"]}
            if event["machine_code"] is not None
            else None
        ),
        "weight_kg": as_float(event["weight_kg"]),
        "length_yards": as_float(event["length_yards"]),
        "production_date": as_text(event["production_date"]),
        "production_time": as_text(event["production_time"]),
    }


def summarize_stock(
    weight_kg: float | None,
    length_yards: float | None,
    consumed_weight_kg: float,
    consumed_length_yards: float,
) -> dict:
    produced_weight = weight_kg or 0.0
    over_weight = consumed_weight_kg - produced_weight > _STOCK_EPSILON
    over_length = length_yards is not None and consumed_length_yards - length_yards > _STOCK_EPSILON
    return {
        "remaining_weight_kg": max(0.0, produced_weight - consumed_weight_kg),
        "remaining_length_yards": (
            max(0.0, length_yards - consumed_length_yards) if length_yards is not None else None
        ),
        "over_consumed": over_weight or over_length,
    }


def stock_remaining(db: Session, serial_number: str) -> dict | None:
    event = find_production_event(db, serial_number)
    if event is None:
        return None

    totals = fetch_rows(
        db,
        text(
            """
            SELECT COUNT(*) AS consumption_count,
                   COALESCE(SUM(consumed_weight_kg), 0) AS consumed_weight_kg,
                   COALESCE(SUM(consumed_length_yards), 0) AS consumed_length_yards
            FROM raw_material_consumption
            WHERE consumed_serial_number = :serial_number
            """
        ),
        {"serial_number": serial_number},
        serial_number=serial_number,
    )[0]

    weight_kg = as_float(event["weight_kg"]) or 0.0
    length_yards = as_float(event["length_yards"])
    consumed_weight = float(totals["consumed_weight_kg"])
    consumed_length = float(totals["consumed_length_yards"])
    return {
        "serial_number": serial_number,
        "weight_kg": weight_kg,
        "length_yards": length_yards,
        "consumed_weight_kg": consumed_weight,
        "consumed_length_yards": consumed_length,
        "consumption_count": int(totals["consumption_count"]),
        **summarize_stock(weight_kg, length_yards, consumed_weight, consumed_length),
    }
