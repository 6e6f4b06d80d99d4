"""
Service layer for the tenant directory.

R3-style: returns TenantInfo DTOs, never ORM entities.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from rental_kernel.domain.dtos import TenantInfo
from rental_kernel.exceptions import TenantNotFoundError
from rental_kernel.logging_config import get_logger
from rental_kernel.models.tenant import Tenant
from rental_kernel.services.base import BaseService

logger = get_logger("services.tenant")


class TenantService(BaseService[Tenant]):

    def _get_by_id(self, tenant_id: UUID) -> Tenant:
        tenant = self.session.get(Tenant, tenant_id)
        if tenant is None:
            raise TenantNotFoundError(str(tenant_id))
        return tenant

    def _get_for_update(self, tenant_id: UUID) -> Tenant:
        tenant = self.session.execute(
            select(Tenant)
            .where(Tenant.id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if tenant is None:
            raise TenantNotFoundError(str(tenant_id))
        return tenant

    def create(
        self,
        full_name: str,
        email: str | None = None,
        phone: str | None = None,
    ) -> TenantInfo:
        """
        Create a tenant.

        Raises:
            ValueError: If full_name is blank.
        """
        if not full_name or not full_name.strip():
            raise ValueError("Tenant full_name is required")

        tenant = Tenant(full_name=full_name.strip(), email=email, phone=phone)
        self.session.add(tenant)
        self.session.flush()

        logger.info("tenant_created", extra={"tenant_id": str(tenant.id)})
        return TenantInfo.from_model(tenant)

    def get(self, tenant_id: UUID) -> TenantInfo:
        return TenantInfo.from_model(self._get_by_id(tenant_id))

    def exists(self, tenant_id: UUID) -> bool:
        return self.session.get(Tenant, tenant_id) is not None
