"""User model: reporters, volunteers and admins."""

from datetime import UTC, datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class User(Base):
    """
    An identity acting on incidents.

    Only the fields the incident lifecycle reads live here; credentials are
    handled by the external auth service, which issues ``api_token``.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user", index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    # Volunteer profile
    current_lat: Mapped[float | None] = mapped_column(Float)
    current_lng: Mapped[float | None] = mapped_column(Float)
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    availability: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Active task back-references (incident ids)
    assigned_tasks: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    api_token: Mapped[str | None] = mapped_column(String(128), unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"
