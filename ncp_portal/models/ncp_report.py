import enum
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ncp_portal.core.database import Base


class NCPStatus(str, enum.Enum):
    PENDING = "pending"
    QA_APPROVED = "qa_approved"
    QA_REJECTED = "qa_rejected"
    TL_PROCESSED = "tl_processed"
    PROCESS_APPROVED = "process_approved"
    PROCESS_REJECTED = "process_rejected"
    MANAGER_APPROVED = "manager_approved"
    MANAGER_REJECTED = "manager_rejected"


class NCPReport(Base):
    __tablename__ = "ncp_reports"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    ncp_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)
    status: Mapped[NCPStatus] = mapped_column(
        Enum(NCPStatus, native_enum=False, length=32, validate_strings=True,
             values_callable=lambda e: [m.value for m in e]),
        default=NCPStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Incident description: written at submission, afterwards only super_admin edits it
    sku_code: Mapped[str] = mapped_column(String(64), nullable=False)
    machine_code: Mapped[str] = mapped_column(String(64), nullable=False)
    incident_date: Mapped[date] = mapped_column(Date, nullable=False)
    incident_time: Mapped[str] = mapped_column(String(8), nullable=False)
    hold_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    hold_quantity_uom: Mapped[str] = mapped_column(String(32), nullable=False)
    problem_description: Mapped[str] = mapped_column(Text, nullable=False)
    photo_attachment: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    submitted_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # QA leader
    qa_leader: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    qa_approved_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    qa_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    disposition: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sorted_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    released_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rejected_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    assigned_team_leader: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    qa_rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Team leader
    tl_processed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    tl_processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    root_cause_analysis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    corrective_action: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preventive_action: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Process lead
    process_approved_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    process_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    process_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    process_rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # QA manager
    manager_approved_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    manager_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    manager_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    manager_rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
