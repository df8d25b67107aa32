from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ncp_portal.core.database import Base


class AuditLogEntry(Base):
    """Append-only record of a super-admin change to an NCP report."""

    __tablename__ = "ncp_audit_log"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # No FK: entries outlive a hard-deleted report
    ncp_code: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    changed_by: Mapped[str] = mapped_column(String(64), nullable=False)
    field_changed: Mapped[str] = mapped_column(String(64), nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)


class SystemLog(Base):
    __tablename__ = "system_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    level: Mapped[str] = mapped_column(String(8), nullable=False, default="info")
    message: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
