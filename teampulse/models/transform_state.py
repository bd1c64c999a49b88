"""Per-source transformer run state."""

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Text
from datetime import datetime, timezone

from .base import Base
from teampulse.utils.timezone import isoformat


class TransformState(Base):
    """
    Orchestration state for one source's transformer.

    This model tracks:
    - Whether a run is in progress (via is_running flag)
    - When the current run took the flag (run_started_at), used as a lease
    - The watermark for the next run (last_success_at)
    - The last failure message

    Usage:
        1. Before running, atomically flip is_running from False to True
           (or take over a lease older than the timeout)
        2. Run the transformer from last_success_at
        3. Record success or failure and clear is_running
    """

    __tablename__ = "transform_states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(20), unique=True, nullable=False)

    # Lock state
    is_running = Column(Boolean, default=False, nullable=False, index=True)
    run_started_at = Column(DateTime(timezone=True), nullable=True)

    # Execution tracking
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    last_success_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)

    # Metadata
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return (
            f"<TransformState(source={self.source}, "
            f"is_running={self.is_running}, "
            f"last_success_at={self.last_success_at})>"
        )

    def to_dict(self):
        return {
            "source": self.source,
            "is_running": bool(self.is_running),
            "run_started_at": isoformat(self.run_started_at),
            "last_run_at": isoformat(self.last_run_at),
            "last_success_at": isoformat(self.last_success_at),
            "last_error": self.last_error,
        }
