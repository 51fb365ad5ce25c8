"""Network (tenant) and per-network settings models."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import BaseModel, Base, BigIntPK


class InvoiceProviderKind(StrEnum):
    """Invoice provider selected for a network."""

    NONE = "NONE"
    MANUAL = "MANUAL"
    SZAMLAZZ = "SZAMLAZZ"
    BILLINGO = "BILLINGO"


class Network(BaseModel):
    """A wash network operator. Isolation boundary for every other entity."""

    __tablename__ = "networks"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    settings: Mapped["NetworkSettings | None"] = relationship(
        "NetworkSettings", back_populates="network", uselist=False
    )


class NetworkSettings(Base):
    """Billing configuration of a network (one row per network)."""

    __tablename__ = "network_settings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    network_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("networks.id"), nullable=False, unique=True
    )

    invoice_provider: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceProviderKind.NONE.value
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="HUF")

    # szamlazz.hu
    szamlazz_agent_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Billingo
    billingo_api_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billingo_block_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    billingo_bank_account_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    network: Mapped["Network"] = relationship("Network", back_populates="settings")
