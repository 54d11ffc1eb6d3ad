"""Key/value settings scoped per tenant admin, and stored metric baselines."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vendorconnect.db.base import BaseModel, UTCDateTime


class Setting(BaseModel):
    """A single setting; ``admin_id`` NULL means the global default."""

    __tablename__ = "settings"
    __table_args__ = (
        UniqueConstraint("admin_id", "key", name="uq_setting_admin_key"),
    )

    admin_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="string"
    )  # string, boolean, integer, json
    group: Mapped[str] = mapped_column(String(100), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Setting {self.key}={self.value!r}>"


class ProjectMetricsBaseline(BaseModel):
    """Historical average used to compare running projects against."""

    __tablename__ = "project_metrics_baselines"

    metric_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    metric_value: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    sample_size: Mapped[int] = mapped_column(Integer, nullable=False)
    task_type_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("task_types.id", ondelete="CASCADE"),
        nullable=True,
    )
    client_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=True,
    )
    calculated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<ProjectMetricsBaseline {self.metric_name}={self.metric_value}>"
