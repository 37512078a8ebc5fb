"""SQLAlchemy ORM model for discovery run audit records."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from context_discovery.infrastructure.database.base import Base


class ContextDiscoveryRunModel(Base):
    """ORM model mapped to the 'context_discovery_runs' table."""

    __tablename__ = "context_discovery_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    intent_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    overall_confidence: Mapped[float] = mapped_column(Float, nullable=False)
    context_bundle: Mapped[str] = mapped_column(Text, nullable=False)  # JSON
    duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ContextDiscoveryRunModel(id='{self.id}', customer_id='{self.customer_id}', "
            f"intent_type='{self.intent_type}', confidence={self.overall_confidence})>"
        )
