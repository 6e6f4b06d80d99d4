"""
Service layer for the unit registry.

Units are created standalone; their status afterwards only changes as a
side effect of contract creation, transition or removal, through
``mark_busy`` / ``mark_free`` called by the contract and archive services.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from rental_kernel.db.types import to_money, to_positive_money
from rental_kernel.domain.dtos import UnitInfo
from rental_kernel.domain.lifecycle import UnitStatus
from rental_kernel.exceptions import UnitNotFoundError
from rental_kernel.logging_config import get_logger
from rental_kernel.models.unit import Unit
from rental_kernel.services.base import BaseService

logger = get_logger("services.unit")


class UnitService(BaseService[Unit]):
    """Creates and reads units; owns the occupancy flips."""

    def _get_by_id(self, unit_id: UUID) -> Unit:
        unit = self.session.get(Unit, unit_id)
        if unit is None:
            raise UnitNotFoundError(str(unit_id))
        return unit

    def _get_for_update(self, unit_id: UUID) -> Unit:
        """Get ORM Unit with row lock; serializes concurrent contract creation."""
        unit = self.session.execute(
            select(Unit)
            .where(Unit.id == unit_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if unit is None:
            raise UnitNotFoundError(str(unit_id))
        return unit

    def create(
        self,
        name: str,
        monthly_price: Decimal | str | int,
        floor: int | None = None,
        area: Decimal | str | int | None = None,
    ) -> UnitInfo:
        """
        Create a FREE unit.

        Raises:
            ValueError: If name is blank or monthly_price is not positive.
            TypeError: If a float is passed for a monetary field.
        """
        if not name or not name.strip():
            raise ValueError("Unit name is required")

        unit = Unit(
            name=name.strip(),
            monthly_price=to_positive_money(monthly_price, "monthly_price"),
            status=UnitStatus.FREE,
            floor=floor,
            area=to_money(area) if area is not None else None,
        )
        self.session.add(unit)
        self.session.flush()

        logger.info(
            "unit_created",
            extra={"unit_id": str(unit.id), "unit_name": unit.name},
        )
        return UnitInfo.from_model(unit)

    def get(self, unit_id: UUID) -> UnitInfo:
        """
        Raises:
            UnitNotFoundError: If the unit doesn't exist.
        """
        return UnitInfo.from_model(self._get_by_id(unit_id))

    def list(self, status: UnitStatus | None = None) -> list[UnitInfo]:
        stmt = select(Unit)
        if status is not None:
            stmt = stmt.where(Unit.status == UnitStatus(status).value)
        stmt = stmt.order_by(Unit.name, Unit.id)
        return [UnitInfo.from_model(u) for u in self.session.execute(stmt).scalars()]

    def mark_busy(self, unit: Unit, contract_id: UUID) -> None:
        """Flip a (locked) unit to BUSY; idempotent."""
        if unit.status == UnitStatus.BUSY:
            return
        previous = unit.status
        unit.status = UnitStatus.BUSY
        self.session.flush()
        logger.info(
            "unit_occupied",
            extra={
                "unit_id": str(unit.id),
                "contract_id": str(contract_id),
                "previous_status": str(getattr(previous, "value", previous)),
            },
        )

    def mark_free(self, unit_id: UUID, contract_id: UUID) -> None:
        """Flip a unit to FREE; idempotent."""
        unit = self._get_for_update(unit_id)
        if unit.status == UnitStatus.FREE:
            return
        unit.status = UnitStatus.FREE
        self.session.flush()
        logger.info(
            "unit_released",
            extra={"unit_id": str(unit.id), "contract_id": str(contract_id)},
        )
