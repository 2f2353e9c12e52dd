from __future__ import annotations

from pydantic import BaseModel, Field


class LineageNode(BaseModel):
    id: str
    serial_number: str
    item_name: str
    item_code: str
    item_type: str
    weight_kg: float
    length_yards: float | None = None
    production_date: str
    production_time: str
    operator_name: str
    machine_name: str
    machine_code: str
    consumed_weight_kg: float | None = Field(
        default=None, description="Quantity moved along the consumption edge that reached this node"
    )
    consumed_length_yards: float | None = None
    truncated: bool = Field(
        default=False, description="True when the depth ceiling stopped the walk below this node"
    )
    parents: list[LineageNode] = Field(default_factory=list)


class CompactLineage(BaseModel):
    serial: str
    code: str
    type: str
    weight: float
    length: float | None = None
    date: str
    parents: list[CompactLineage] | None = None


class LineageResponse(BaseModel):
    serial_number: str
    ancestors: LineageNode | None
    children: list[LineageNode]


class ChildrenResponse(BaseModel):
    serial_number: str
    children: list[LineageNode]


class StockRemainingOut(BaseModel):
    serial_number: str
    weight_kg: float
    length_yards: float | None
    consumed_weight_kg: float
    consumed_length_yards: float
    remaining_weight_kg: float
    remaining_length_yards: float | None
    consumption_count: int
    over_consumed: bool


LineageNode.model_rebuild()
CompactLineage.model_rebuild()
