"""Reserve, ReserveVault and LedgerEvent models."""

from datetime import datetime
from sqlalchemy import String, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from reserve_ledger.models.database import Base, IntegerText


class Reserve(Base):
    __tablename__ = "reserve"
    # AUTOINCREMENT keeps SQLite from handing out a deleted reserve's seq again
    __table_args__ = {"sqlite_autoincrement": True}

    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Assigned right after the first flush, inside the creating transaction
    reserve_id: Mapped[str | None] = mapped_column(String(66), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text, default="")
    classification: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[str] = mapped_column(
        String(30), default=lambda: datetime.now().isoformat()
    )


class ReserveVault(Base):
    __tablename__ = "reserve_vault"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    reserve_id: Mapped[str] = mapped_column(String(66), index=True)
    position: Mapped[int] = mapped_column(Integer)
    # Unique: a vault belongs to at most one reserve (the reverse lookup)
    vault: Mapped[str] = mapped_column(String(42), unique=True, index=True)
    calculator: Mapped[str] = mapped_column(String(42))
    weight_numerator: Mapped[int] = mapped_column(IntegerText)
    weight_denominator: Mapped[int] = mapped_column(IntegerText)
    added_at: Mapped[str] = mapped_column(
        String(30), default=lambda: datetime.now().isoformat()
    )


class LedgerEvent(Base):
    __tablename__ = "ledger_event"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(20))
    reserve_id: Mapped[str] = mapped_column(String(66), index=True)
    vault: Mapped[str | None] = mapped_column(String(42), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(30), default=lambda: datetime.now().isoformat()
    )
