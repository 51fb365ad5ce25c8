"""WashEvent and WashEventServiceLine models."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from src.core.database.base import Base, BaseModel, BigIntPK, NetworkScopedMixin
from src.core.exceptions import ImmutableRecordError


class EntryMode(StrEnum):
    """How a wash was started."""

    QR_DRIVER = "QR_DRIVER"
    MANUAL_OPERATOR = "MANUAL_OPERATOR"


class WashEventStatus(StrEnum):
    """Wash event lifecycle status."""

    CREATED = "CREATED"
    AUTHORIZED = "AUTHORIZED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    LOCKED = "LOCKED"
    REJECTED = "REJECTED"


class VehicleRole(StrEnum):
    TRACTOR = "TRACTOR"
    TRAILER = "TRAILER"


# Allowed status changes; LOCKED and REJECTED are terminal
TRANSITIONS: dict[WashEventStatus, frozenset[WashEventStatus]] = {
    WashEventStatus.CREATED: frozenset({WashEventStatus.AUTHORIZED, WashEventStatus.REJECTED}),
    WashEventStatus.AUTHORIZED: frozenset({WashEventStatus.IN_PROGRESS, WashEventStatus.REJECTED}),
    WashEventStatus.IN_PROGRESS: frozenset({WashEventStatus.COMPLETED}),
    WashEventStatus.COMPLETED: frozenset({WashEventStatus.LOCKED}),
    WashEventStatus.LOCKED: frozenset(),
    WashEventStatus.REJECTED: frozenset(),
}

# Timestamp column stamped when entering a status
TRANSITION_TIMESTAMPS: dict[WashEventStatus, str] = {
    WashEventStatus.AUTHORIZED: "authorized_at",
    WashEventStatus.IN_PROGRESS: "started_at",
    WashEventStatus.COMPLETED: "completed_at",
    WashEventStatus.REJECTED: "rejected_at",
    WashEventStatus.LOCKED: "locked_at",
}

IMMUTABLE_STATUSES = frozenset({WashEventStatus.COMPLETED.value, WashEventStatus.LOCKED.value})


def can_transition(current: str, requested: str) -> bool:
    return WashEventStatus(requested) in TRANSITIONS[WashEventStatus(current)]


class WashEvent(NetworkScopedMixin, BaseModel):
    """
    One vehicle wash at a location.

    Once COMPLETED or LOCKED the row is frozen. The status change to LOCKED and
    invoice (un)linking are done with bulk UPDATE statements; every other change
    through the ORM is refused at flush time.
    """

    __tablename__ = "wash_events"

    location_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("locations.id"), nullable=False, index=True
    )
    entry_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WashEventStatus.CREATED.value, index=True
    )

    # Parties
    driver_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("drivers.id"), nullable=True, index=True
    )
    partner_company_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("partner_companies.id"), nullable=True, index=True
    )
    driver_name_manual: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Vehicles (registered vehicle or manually typed plate)
    tractor_vehicle_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("vehicles.id"), nullable=True
    )
    tractor_plate_manual: Mapped[str | None] = mapped_column(String(20), nullable=True)
    trailer_vehicle_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("vehicles.id"), nullable=True
    )
    trailer_plate_manual: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Commercial
    service_package_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("service_packages.id"), nullable=False, index=True
    )
    tractor_price: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    trailer_price: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    total_price: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    final_price: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="HUF")
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    invoice_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=True, index=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Transition timestamps, each set once by its transition
    authorized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    location: Mapped["Location"] = relationship("Location")
    service_package: Mapped["ServicePackage"] = relationship("ServicePackage")
    tractor_vehicle: Mapped["Vehicle | None"] = relationship(
        "Vehicle", foreign_keys=[tractor_vehicle_id]
    )
    trailer_vehicle: Mapped["Vehicle | None"] = relationship(
        "Vehicle", foreign_keys=[trailer_vehicle_id]
    )
    service_lines: Mapped[list["WashEventServiceLine"]] = relationship(
        "WashEventServiceLine",
        back_populates="wash_event",
        cascade="all, delete-orphan",
        order_by="WashEventServiceLine.id",
    )

    @property
    def tractor_plate(self) -> str | None:
        """Plate of the tractor (relationship must be loaded when a vehicle is linked)."""
        if self.tractor_vehicle_id is not None and self.tractor_vehicle is not None:
            return self.tractor_vehicle.plate_number
        return self.tractor_plate_manual

    @property
    def trailer_plate(self) -> str | None:
        if self.trailer_vehicle_id is not None and self.trailer_vehicle is not None:
            return self.trailer_vehicle.plate_number
        return self.trailer_plate_manual

    @property
    def has_trailer(self) -> bool:
        return self.trailer_vehicle_id is not None or bool(self.trailer_plate_manual)


class WashEventServiceLine(Base):
    """One priced (service, vehicle role) component of a wash."""

    __tablename__ = "wash_event_service_lines"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    wash_event_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("wash_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_package_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("service_packages.id"), nullable=False
    )
    vehicle_type: Mapped[str] = mapped_column(String(30), nullable=False)
    vehicle_role: Mapped[str] = mapped_column(String(10), nullable=False)
    plate_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    is_custom_price: Mapped[bool] = mapped_column(default=False, nullable=False)

    wash_event: Mapped["WashEvent"] = relationship("WashEvent", back_populates="service_lines")
    service_package: Mapped["ServicePackage"] = relationship("ServicePackage")


def _committed_status(obj: WashEvent) -> str | None:
    history = inspect(obj).attrs.status.history
    if history.deleted:
        return history.deleted[0]
    return obj.status


@event.listens_for(Session, "before_flush")
def guard_finished_wash_events(session: Session, flush_context, instances) -> None:
    """Refuse ORM changes to COMPLETED or LOCKED wash events and their lines."""
    for obj in list(session.dirty) + list(session.deleted):
        if isinstance(obj, WashEvent):
            status = _committed_status(obj)
            if status not in IMMUTABLE_STATUSES:
                continue
            if obj in session.deleted:
                raise ImmutableRecordError("WashEvent", obj.id, status, ["<deleted>"])
            state = inspect(obj)
            changed = [
                attr.key
                for attr in state.mapper.column_attrs
                if state.attrs[attr.key].history.has_changes()
            ]
            if changed:
                raise ImmutableRecordError("WashEvent", obj.id, status, changed)
        elif isinstance(obj, WashEventServiceLine):
            parent = session.identity_map.get(
                inspect(WashEvent).identity_key_from_primary_key((obj.wash_event_id,))
            )
            if parent is not None and _committed_status(parent) in IMMUTABLE_STATUSES:
                if obj in session.deleted or session.is_modified(obj, include_collections=False):
                    raise ImmutableRecordError(
                        "WashEvent", parent.id, _committed_status(parent), ["service_lines"]
                    )


# Import at the end to avoid circular imports
from src.modules.fleet.models import Vehicle  # noqa: E402
from src.modules.locations.models import Location  # noqa: E402
from src.modules.pricing.models import ServicePackage  # noqa: E402
