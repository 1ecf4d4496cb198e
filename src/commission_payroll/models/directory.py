"""Users and clients referenced by ledger entries.

Both tables are owned by the surrounding application; the payroll engine
only reads them for display names and foreign keys.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from commission_payroll.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Application user: commission earner, adjustment beneficiary, or payroll actor."""

    __tablename__ = "users"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="coach")


class Client(Base, TimestampMixin):
    """Client whose payment earned a commission."""

    __tablename__ = "clients"

    client_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    lead_source: Mapped[str | None] = mapped_column(String, nullable=True)
