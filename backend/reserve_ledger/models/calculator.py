"""CalculatorDeployment model."""

from datetime import datetime
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from reserve_ledger.models.database import Base


class CalculatorDeployment(Base):
    __tablename__ = "calculator"
    __table_args__ = {"sqlite_autoincrement": True}

    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    address: Mapped[str | None] = mapped_column(String(42), unique=True, index=True)
    kind: Mapped[str] = mapped_column(String(20))
    price_feed: Mapped[str | None] = mapped_column(String(42), nullable=True)
    router: Mapped[str | None] = mapped_column(String(42), nullable=True)
    holder: Mapped[str | None] = mapped_column(String(42), nullable=True)
    asset: Mapped[str | None] = mapped_column(String(42), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(30), default=lambda: datetime.now().isoformat()
    )
