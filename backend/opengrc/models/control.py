from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Control(Base):
    """Internal control, mapped to framework requirements."""
    __tablename__ = "controls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    control_type: Mapped[str] = mapped_column(String(20), default="preventive", nullable=False)
    frequency: Mapped[str] = mapped_column(String(20), default="continuous", nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="not_implemented", nullable=False)
    owner: Mapped[str | None] = mapped_column(String(100))
    implementation_notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ControlRequirementMapping(Base):
    __tablename__ = "control_requirement_mappings"
    __table_args__ = (UniqueConstraint("control_id", "requirement_id", name="uq_control_requirement"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    control_id: Mapped[int] = mapped_column(ForeignKey("controls.id", ondelete="CASCADE"), nullable=False, index=True)
    requirement_id: Mapped[int] = mapped_column(
        ForeignKey("framework_requirements.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
