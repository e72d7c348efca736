from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Asset(Base):
    """Asset inventory entry, user-authored or populated by an integration collector."""
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    asset_type: Mapped[str | None] = mapped_column(String(30))
    category: Mapped[str | None] = mapped_column(String(100))
    classification: Mapped[str] = mapped_column(String(20), default="internal", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    owner: Mapped[str | None] = mapped_column(String(100))
    location: Mapped[str | None] = mapped_column(String(255))
    ip_address: Mapped[str | None] = mapped_column(String(45))
    mac_address: Mapped[str | None] = mapped_column(String(17))
    purchase_date: Mapped[date | None] = mapped_column(Date)
    warranty_until: Mapped[date | None] = mapped_column(Date)
    metadata_json: Mapped[dict | None] = mapped_column("metadata", JSON)

    # Lifecycle
    lifecycle_stage: Mapped[str] = mapped_column(String(30), default="active", nullable=False, index=True)
    commissioned_date: Mapped[date | None] = mapped_column(Date)
    decommission_date: Mapped[date | None] = mapped_column(Date)
    last_maintenance_date: Mapped[date | None] = mapped_column(Date)
    next_maintenance_due: Mapped[date | None] = mapped_column(Date)
    maintenance_frequency: Mapped[str | None] = mapped_column(String(20))
    end_of_life_date: Mapped[date | None] = mapped_column(Date)
    end_of_support_date: Mapped[date | None] = mapped_column(Date)

    # Set when a collector owns the record
    integration_source: Mapped[str | None] = mapped_column(String(100), index=True)
    external_id: Mapped[str | None] = mapped_column(String(255), index=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AssetControl(Base):
    __tablename__ = "asset_controls"
    __table_args__ = (UniqueConstraint("asset_id", "control_id", name="uq_asset_control"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)
    control_id: Mapped[int] = mapped_column(ForeignKey("controls.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
