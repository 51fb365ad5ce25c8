from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit import ActorContext
from src.core.exceptions import (
    ConflictError,
    ImmutableRecordError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from src.modules.fleet.models import VehicleCategory
from src.modules.locations.models import LocationType, LocationVisibility
from src.modules.pricing.models import VehicleType
from src.modules.wash_events.models import (
    EntryMode,
    WashEvent,
    WashEventServiceLine,
    WashEventStatus,
    can_transition,
)
from src.modules.wash_events.schemas import (
    ManualWashEventCreate,
    QrWashEventCreate,
    ServiceLineInput,
    WashEventFilters,
)
from src.modules.wash_events.service import WashEventService
from src.shared.utils.dates import utcnow
from tests.factories import (
    completed_wash,
    create_driver,
    create_location,
    create_network,
    create_partner,
    create_service,
    create_vehicle,
    set_price,
)


def manual_request(world: dict, **overrides) -> ManualWashEventCreate:
    values = {
        "location_id": world["location"].id,
        "partner_company_id": world["partner"].id,
        "driver_name_manual": "Kovacs Gabor",
        "service_package_id": world["service"].id,
        "tractor_plate_manual": "abc-123",
    }
    values.update(overrides)
    return ManualWashEventCreate(**values)


class TestTransitionTable:
    def test_allowed(self):
        assert can_transition("CREATED", "AUTHORIZED")
        assert can_transition("CREATED", "REJECTED")
        assert can_transition("AUTHORIZED", "IN_PROGRESS")
        assert can_transition("AUTHORIZED", "REJECTED")
        assert can_transition("IN_PROGRESS", "COMPLETED")
        assert can_transition("COMPLETED", "LOCKED")

    def test_refused(self):
        assert not can_transition("CREATED", "COMPLETED")
        assert not can_transition("IN_PROGRESS", "REJECTED")
        assert not can_transition("COMPLETED", "REJECTED")
        assert not can_transition("LOCKED", "COMPLETED")
        assert not can_transition("REJECTED", "AUTHORIZED")


class TestManualEntry:
    """Operator-entered washes."""

    async def test_create_with_trailer(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        service = WashEventService(db_session)
        wash_event = await service.create_manual_operator(
            world["network"].id,
            manual_request(
                world,
                trailer_plate_manual="xyz-987",
                services=[
                    ServiceLineInput(service_package_id=world["service"].id),
                    ServiceLineInput(
                        service_package_id=world["service"].id,
                        vehicle_type=VehicleType.TRAILER_ONLY,
                        vehicle_role="TRAILER",
                    ),
                ],
            ),
            operator,
        )

        assert wash_event.status == WashEventStatus.CREATED.value
        assert wash_event.entry_mode == EntryMode.MANUAL_OPERATOR.value
        assert wash_event.tractor_plate_manual == "ABC-123"
        assert wash_event.trailer_plate_manual == "XYZ-987"
        assert wash_event.tractor_price == Decimal("1000.00")
        assert wash_event.trailer_price == Decimal("500.00")
        assert wash_event.total_price == Decimal("1500.00")
        assert wash_event.final_price == Decimal("1500.00")
        assert len(wash_event.service_lines) == 2
        trailer_line = [line for line in wash_event.service_lines if line.vehicle_role == "TRAILER"]
        assert trailer_line[0].plate_number == "XYZ-987"

    async def test_missing_price_is_rejected(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        service = WashEventService(db_session)
        with pytest.raises(ValidationError):
            await service.create_manual_operator(
                world["network"].id,
                manual_request(
                    world,
                    services=[
                        ServiceLineInput(
                            service_package_id=world["service"].id, vehicle_type=VehicleType.BUS
                        )
                    ],
                ),
                operator,
            )

    async def test_partner_price_applies(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        await set_price(
            db_session,
            world["network"].id,
            world["service"],
            "800.00",
            partner_id=world["partner"].id,
        )
        service = WashEventService(db_session)
        wash_event = await service.create_manual_operator(
            world["network"].id, manual_request(world), operator
        )

        assert wash_event.total_price == Decimal("800.00")
        assert wash_event.service_lines[0].is_custom_price is True

    async def test_service_not_offered_at_location(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        other_service = await create_service(db_session, world["network"].id, code="FULL")
        await set_price(db_session, world["network"].id, other_service, "2000.00")
        service = WashEventService(db_session)

        with pytest.raises(ValidationError):
            await service.create_manual_operator(
                world["network"].id,
                manual_request(world, service_package_id=other_service.id),
                operator,
            )

    async def test_partner_of_other_network(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        other = await create_network(db_session, slug="south")
        foreign = await create_partner(db_session, other.id, code="F1")
        service = WashEventService(db_session)

        with pytest.raises(ValidationError):
            await service.create_manual_operator(
                world["network"].id,
                manual_request(world, partner_company_id=foreign.id),
                operator,
            )

    async def test_trailer_line_without_trailer(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        service = WashEventService(db_session)
        with pytest.raises(ValidationError):
            await service.create_manual_operator(
                world["network"].id,
                manual_request(
                    world,
                    services=[
                        ServiceLineInput(
                            service_package_id=world["service"].id, vehicle_role="TRAILER"
                        )
                    ],
                ),
                operator,
            )


class TestQrEntry:
    """Driver-started washes."""

    async def test_fleet_driver_with_registered_tractor(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        service = WashEventService(db_session)
        wash_event = await service.create_qr_driver(
            world["network"].id,
            QrWashEventCreate(
                location_id=world["location"].id,
                driver_id=world["driver"].id,
                service_package_id=world["service"].id,
                tractor_vehicle_id=world["tractor"].id,
            ),
            operator,
        )

        assert wash_event.entry_mode == EntryMode.QR_DRIVER.value
        assert wash_event.partner_company_id == world["partner"].id
        assert wash_event.total_price == Decimal("1000.00")
        assert wash_event.service_lines[0].plate_number == "ABC-123"

    async def test_missing_price_is_zero(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        service = WashEventService(db_session)
        wash_event = await service.create_qr_driver(
            world["network"].id,
            QrWashEventCreate(
                location_id=world["location"].id,
                driver_id=world["driver"].id,
                service_package_id=world["service"].id,
                tractor_plate_manual="NEW-001",
                services=[
                    ServiceLineInput(
                        service_package_id=world["service"].id, vehicle_type=VehicleType.BUS
                    )
                ],
            ),
            operator,
        )

        assert wash_event.total_price == Decimal("0.00")
        assert wash_event.service_lines[0].unit_price == Decimal("0.00")

    async def test_vehicle_of_another_partner(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        other_partner = await create_partner(db_session, world["network"].id, code="P2")
        foreign_tractor = await create_vehicle(
            db_session, world["network"].id, "OTH-001", partner_id=other_partner.id
        )
        service = WashEventService(db_session)

        with pytest.raises(ValidationError):
            await service.create_qr_driver(
                world["network"].id,
                QrWashEventCreate(
                    location_id=world["location"].id,
                    driver_id=world["driver"].id,
                    service_package_id=world["service"].id,
                    tractor_vehicle_id=foreign_tractor.id,
                ),
                operator,
            )

    async def test_trailer_is_not_a_tractor(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        trailer = await create_vehicle(
            db_session,
            world["network"].id,
            "TRL-001",
            category=VehicleCategory.TRAILER,
            partner_id=world["partner"].id,
        )
        service = WashEventService(db_session)

        with pytest.raises(ValidationError):
            await service.create_qr_driver(
                world["network"].id,
                QrWashEventCreate(
                    location_id=world["location"].id,
                    driver_id=world["driver"].id,
                    service_package_id=world["service"].id,
                    tractor_vehicle_id=trailer.id,
                ),
                operator,
            )

    async def test_dedicated_location(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        network_id = world["network"].id
        other_partner = await create_partner(db_session, network_id, code="P2")
        dedicated = await create_location(
            db_session,
            network_id,
            code="DED",
            services=[world["service"]],
            visibility=LocationVisibility.DEDICATED,
            dedicated_partner_ids=[other_partner.id],
        )
        service = WashEventService(db_session)
        request = QrWashEventCreate(
            location_id=dedicated.id,
            driver_id=world["driver"].id,
            service_package_id=world["service"].id,
            tractor_plate_manual="ABC-123",
        )

        with pytest.raises(ValidationError):
            await service.create_qr_driver(network_id, request, operator)

        allowed_driver = await create_driver(db_session, network_id, other_partner.id, "Istvan")
        wash_event = await service.create_qr_driver(
            network_id, request.model_copy(update={"driver_id": allowed_driver.id}), operator
        )
        assert wash_event.location_id == dedicated.id

    async def test_fleet_driver_cannot_use_other_network_location(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        other = await create_network(db_session, slug="south")
        other_service = await create_service(db_session, other.id)
        public = await create_location(
            db_session,
            other.id,
            code="PUB",
            services=[other_service],
            visibility=LocationVisibility.PUBLIC,
        )
        service = WashEventService(db_session)

        with pytest.raises(NotFoundError):
            await service.create_qr_driver(
                world["network"].id,
                QrWashEventCreate(
                    location_id=public.id,
                    driver_id=world["driver"].id,
                    service_package_id=other_service.id,
                    tractor_plate_manual="ABC-123",
                ),
                operator,
            )


class TestPrivateCustomer:
    """Drivers without a partner company."""

    async def test_public_location_only(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        network_id = world["network"].id
        private = await create_driver(db_session, network_id, None, "Anna")
        service = WashEventService(db_session)

        with pytest.raises(ValidationError):
            await service.create_qr_driver(
                network_id,
                QrWashEventCreate(
                    location_id=world["location"].id,
                    driver_id=private.id,
                    service_package_id=world["service"].id,
                    tractor_plate_manual="PRV-001",
                ),
                operator,
            )

    async def test_public_car_wash_of_another_network(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        private = await create_driver(db_session, world["network"].id, None, "Anna")
        own_car = await create_vehicle(
            db_session,
            world["network"].id,
            "PRV-001",
            category=VehicleCategory.SOLO,
            driver_id=private.id,
        )
        other = await create_network(db_session, slug="south")
        other_service = await create_service(db_session, other.id)
        await set_price(db_session, other.id, other_service, "3500.00", VehicleType.CAR)
        car_wash = await create_location(
            db_session,
            other.id,
            code="CAR",
            services=[other_service],
            visibility=LocationVisibility.PUBLIC,
            location_type=LocationType.CAR_WASH,
        )
        service = WashEventService(db_session)

        wash_event = await service.create_qr_driver(
            world["network"].id,
            QrWashEventCreate(
                location_id=car_wash.id,
                driver_id=private.id,
                service_package_id=other_service.id,
                tractor_vehicle_id=own_car.id,
            ),
            operator,
        )

        # Belongs to the location's network, priced as a car
        assert wash_event.network_id == other.id
        assert wash_event.partner_company_id is None
        assert wash_event.service_lines[0].vehicle_type == VehicleType.CAR.value
        assert wash_event.total_price == Decimal("3500.00")


class TestLifecycle:
    async def test_happy_path_sets_each_timestamp_once(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        network_id = world["network"].id
        service = WashEventService(db_session)
        wash_event = await service.create_manual_operator(
            network_id, manual_request(world), operator
        )

        authorized = await service.authorize(network_id, wash_event.id, operator)
        assert authorized.status == WashEventStatus.AUTHORIZED.value
        authorized_at = authorized.authorized_at
        assert authorized_at is not None

        started = await service.start(network_id, wash_event.id, operator)
        assert started.started_at is not None
        completed = await service.complete(network_id, wash_event.id, operator)
        assert completed.status == WashEventStatus.COMPLETED.value
        assert completed.completed_at is not None
        assert completed.authorized_at == authorized_at

        locked = await service.lock(network_id, wash_event.id, operator)
        assert locked.status == WashEventStatus.LOCKED.value
        assert locked.locked_at is not None

        trail = await service.list_audit_trail(network_id, wash_event.id)
        assert [log.action for log in trail] == [
            "CREATE",
            "AUTHORIZE",
            "START",
            "COMPLETE",
            "LOCK",
        ]
        assert trail[1].previous_data["status"] == "CREATED"
        assert trail[1].new_data["status"] == "AUTHORIZED"

    async def test_double_authorize_is_refused(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        network_id = world["network"].id
        service = WashEventService(db_session)
        wash_event = await service.create_manual_operator(
            network_id, manual_request(world), operator
        )
        first = await service.authorize(network_id, wash_event.id, operator)
        authorized_at = first.authorized_at

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.authorize(network_id, wash_event.id, operator)
        assert exc_info.value.current_status == "AUTHORIZED"

        again = await service.get_wash_event(network_id, wash_event.id)
        assert again.authorized_at == authorized_at

    async def test_cannot_skip_states(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        network_id = world["network"].id
        service = WashEventService(db_session)
        wash_event = await service.create_manual_operator(
            network_id, manual_request(world), operator
        )

        with pytest.raises(InvalidTransitionError):
            await service.complete(network_id, wash_event.id, operator)
        with pytest.raises(InvalidTransitionError):
            await service.lock(network_id, wash_event.id, operator)

    async def test_reject_needs_reason(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        network_id = world["network"].id
        service = WashEventService(db_session)
        wash_event = await service.create_manual_operator(
            network_id, manual_request(world), operator
        )

        with pytest.raises(ValidationError):
            await service.reject(network_id, wash_event.id, "   ", operator)

        rejected = await service.reject(network_id, wash_event.id, "Wrong plate", operator)
        assert rejected.status == WashEventStatus.REJECTED.value
        assert rejected.rejection_reason == "Wrong plate"
        assert rejected.rejected_at is not None

        with pytest.raises(InvalidTransitionError):
            await service.authorize(network_id, wash_event.id, operator)

    async def test_in_progress_cannot_be_rejected(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        network_id = world["network"].id
        service = WashEventService(db_session)
        wash_event = await service.create_manual_operator(
            network_id, manual_request(world), operator
        )
        await service.authorize(network_id, wash_event.id, operator)
        await service.start(network_id, wash_event.id, operator)

        with pytest.raises(InvalidTransitionError):
            await service.reject(network_id, wash_event.id, "Too late", operator)

    async def test_other_network_cannot_see_or_move(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        other = await create_network(db_session, slug="south")
        service = WashEventService(db_session)
        wash_event = await service.create_manual_operator(
            world["network"].id, manual_request(world), operator
        )

        with pytest.raises(NotFoundError):
            await service.get_wash_event(other.id, wash_event.id)
        with pytest.raises(NotFoundError):
            await service.authorize(other.id, wash_event.id, operator)


def authorize_behind_lock(
    db_session: AsyncSession, service: WashEventService, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Let a competing request authorize the wash right after `service` read it for update."""
    get_wash_event = service.get_wash_event

    async def read_then_lose_race(network_id, wash_event_id, for_update=False):
        wash_event = await get_wash_event(network_id, wash_event_id, for_update=for_update)
        if for_update:
            await db_session.execute(
                update(WashEvent)
                .where(WashEvent.id == wash_event_id)
                .values(status=WashEventStatus.AUTHORIZED.value, authorized_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await db_session.commit()
        return wash_event

    monkeypatch.setattr(service, "get_wash_event", read_then_lose_race)


class TestConcurrentTransitions:
    async def test_lost_race_to_same_status_is_invalid(
        self,
        db_session: AsyncSession,
        world: dict,
        operator: ActorContext,
        monkeypatch: pytest.MonkeyPatch,
    ):
        network_id = world["network"].id
        wash_event = await WashEventService(db_session).create_manual_operator(
            network_id, manual_request(world), operator
        )
        service = WashEventService(db_session)
        authorize_behind_lock(db_session, service, monkeypatch)

        with pytest.raises(InvalidTransitionError):
            await service.authorize(network_id, wash_event.id, operator)

        reader = WashEventService(db_session)
        latest = await reader.get_wash_event(network_id, wash_event.id)
        assert latest.status == WashEventStatus.AUTHORIZED.value
        trail = await reader.list_audit_trail(network_id, wash_event.id)
        assert [log.action for log in trail] == ["CREATE"]

    async def test_lost_race_to_other_status_is_conflict(
        self,
        db_session: AsyncSession,
        world: dict,
        operator: ActorContext,
        monkeypatch: pytest.MonkeyPatch,
    ):
        network_id = world["network"].id
        wash_event = await WashEventService(db_session).create_manual_operator(
            network_id, manual_request(world), operator
        )
        service = WashEventService(db_session)
        authorize_behind_lock(db_session, service, monkeypatch)

        with pytest.raises(ConflictError):
            await service.reject(network_id, wash_event.id, "Wrong plate", operator)

        latest = await WashEventService(db_session).get_wash_event(network_id, wash_event.id)
        assert latest.status == WashEventStatus.AUTHORIZED.value
        assert latest.rejected_at is None
        assert latest.rejection_reason is None


class TestImmutability:
    """Finished washes cannot be edited through the ORM."""

    async def test_completed_wash_fields_are_frozen(
        self, db_session: AsyncSession, world: dict
    ):
        wash_event = await completed_wash(
            db_session,
            world["network"].id,
            world["location"].id,
            world["partner"].id,
            world["service"].id,
        )

        wash_event.final_price = Decimal("1.00")
        with pytest.raises(ImmutableRecordError):
            await db_session.flush()
        await db_session.rollback()

        reloaded = await WashEventService(db_session).get_wash_event(
            world["network"].id, wash_event.id
        )
        assert reloaded.final_price == Decimal("1000.00")

    async def test_completed_wash_cannot_be_deleted(
        self, db_session: AsyncSession, world: dict
    ):
        wash_event = await completed_wash(
            db_session,
            world["network"].id,
            world["location"].id,
            world["partner"].id,
            world["service"].id,
        )

        await db_session.delete(wash_event)
        with pytest.raises(ImmutableRecordError):
            await db_session.flush()
        await db_session.rollback()

    async def test_service_lines_are_frozen(self, db_session: AsyncSession, world: dict):
        wash_event = await completed_wash(
            db_session,
            world["network"].id,
            world["location"].id,
            world["partner"].id,
            world["service"].id,
        )
        line = (
            await db_session.execute(
                select(WashEventServiceLine).where(
                    WashEventServiceLine.wash_event_id == wash_event.id
                )
            )
        ).scalar_one()

        line.unit_price = Decimal("1.00")
        with pytest.raises(ImmutableRecordError):
            await db_session.flush()
        await db_session.rollback()

    async def test_lock_is_still_possible(
        self, db_session: AsyncSession, world: dict, operator: ActorContext
    ):
        wash_event = await completed_wash(
            db_session,
            world["network"].id,
            world["location"].id,
            world["partner"].id,
            world["service"].id,
        )
        locked = await WashEventService(db_session).lock(
            world["network"].id, wash_event.id, operator
        )
        assert locked.status == WashEventStatus.LOCKED.value


class TestListWashEvents:
    async def test_filters(self, db_session: AsyncSession, world: dict, operator: ActorContext):
        network_id = world["network"].id
        service = WashEventService(db_session)
        await completed_wash(
            db_session, network_id, world["location"].id, world["partner"].id, world["service"].id
        )
        await service.create_manual_operator(network_id, manual_request(world), operator)

        everything, total = await service.list_wash_events(network_id, WashEventFilters())
        assert total == 2
        completed, total = await service.list_wash_events(
            network_id, WashEventFilters(status=WashEventStatus.COMPLETED)
        )
        assert total == 1
        assert completed[0].status == "COMPLETED"

        other = await create_network(db_session, slug="south")
        _, total = await service.list_wash_events(other.id, WashEventFilters())
        assert total == 0


class TestWashEventApi:
    async def test_manual_flow_over_http(self, client: AsyncClient, world: dict):
        headers = {
            "X-Network-Id": str(world["network"].id),
            "X-Actor-Type": "OPERATOR",
            "X-Actor-Id": "op-7",
        }
        response = await client.post(
            "/api/v1/wash-events/manual",
            json={
                "location_id": world["location"].id,
                "partner_company_id": world["partner"].id,
                "driver_name_manual": "Kovacs Gabor",
                "service_package_id": world["service"].id,
                "tractor_plate_manual": "ABC-123",
            },
            headers=headers,
        )
        assert response.status_code == 201
        wash_event_id = response.json()["data"]["id"]

        for step in ("authorize", "start", "complete"):
            response = await client.post(
                f"/api/v1/wash-events/{wash_event_id}/{step}", headers=headers
            )
            assert response.status_code == 200
        assert response.json()["data"]["status"] == "COMPLETED"

        response = await client.post(
            f"/api/v1/wash-events/{wash_event_id}/authorize", headers=headers
        )
        assert response.status_code == 409
        assert response.json()["code"] == "invalid_transition"

        response = await client.get(f"/api/v1/wash-events/{wash_event_id}/audit", headers=headers)
        trail = response.json()["data"]
        assert len(trail) == 4
        assert trail[0]["actor_type"] == "OPERATOR"
        assert trail[0]["actor_id"] == "op-7"

    async def test_reject_requires_reason_body(self, client: AsyncClient, world: dict):
        headers = {"X-Network-Id": str(world["network"].id)}
        response = await client.post(
            "/api/v1/wash-events/manual",
            json={
                "location_id": world["location"].id,
                "partner_company_id": world["partner"].id,
                "driver_name_manual": "Kovacs Gabor",
                "service_package_id": world["service"].id,
                "tractor_plate_manual": "ABC-123",
            },
            headers=headers,
        )
        wash_event_id = response.json()["data"]["id"]

        response = await client.post(
            f"/api/v1/wash-events/{wash_event_id}/reject", json={"reason": ""}, headers=headers
        )
        assert response.status_code == 422

    async def test_list_is_paginated(self, client: AsyncClient, world: dict):
        response = await client.get(
            "/api/v1/wash-events",
            params={"page": 1, "limit": 10},
            headers={"X-Network-Id": str(world["network"].id)},
        )
        assert response.status_code == 200
        assert response.json()["data"]["items"] == []
