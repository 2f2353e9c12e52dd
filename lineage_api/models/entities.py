from __future__ import annotations

import uuid

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, Text, Time, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from lineage_api.db.session import Base


class Item(Base):
    __tablename__ = "items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_code: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    # raw_material | intermediate_type_1 | intermediate_type_2 | finished_good
    item_type: Mapped[str] = mapped_column(Text, nullable=False)


class Machine(Base):
    __tablename__ = "machines"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    machine_code: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    machine_name: Mapped[str] = mapped_column(Text, nullable=False)


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)


class ProductionRecord(Base):
    __tablename__ = "production_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    serial_number: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    item_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("items.id"), nullable=False)
    operator_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("profiles.id"), nullable=False)
    machine_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("machines.id"))
    weight_kg: Mapped[float] = mapped_column(Numeric(10, 3), nullable=False)
    length_yards: Mapped[float | None] = mapped_column(Numeric(10, 2))
    production_date: Mapped[str] = mapped_column(Date, nullable=False)
    production_time: Mapped[str] = mapped_column(Time, nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())


class RawMaterialConsumption(Base):
    __tablename__ = "raw_material_consumption"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    production_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("production_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    consumed_serial_number: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    consumed_weight_kg: Mapped[float | None] = mapped_column(Numeric(10, 3))
    consumed_length_yards: Mapped[float | None] = mapped_column(Numeric(10, 2))
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
