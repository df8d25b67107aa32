import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from ncp_portal.core.database import Base


class UserRole(str, enum.Enum):
    USER = "user"
    QA_LEADER = "qa_leader"
    TEAM_LEADER = "team_leader"
    PROCESS_LEAD = "process_lead"
    QA_MANAGER = "qa_manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class User(Base):
    """Mirror of the identity provider's user record; the portal reads it, never authenticates with it."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, length=32, validate_strings=True,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.USER,
    )
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
