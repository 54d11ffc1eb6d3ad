"""User model."""

from enum import Enum

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from vendorconnect.db.base import BaseModel


class UserRole(str, Enum):
    ADMIN = "admin"
    SUB_ADMIN = "sub_admin"
    REQUESTER = "requester"
    TASKER = "tasker"


class User(BaseModel):
    """Application user (admin, requester or tasker)."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.TASKER.value
    )  # admin, sub_admin, requester, tasker

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        try:
            return f"<User {self.email}>"
        except Exception:
            return f"<User id={self.id}>"
