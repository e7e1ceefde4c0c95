"""
Pricing resolver.

The service_pricing table is the authoritative price source. The YAML
catalog is read-only seed data: it fills an empty table at startup and
answers for pairs the table does not hold yet. Reads go through a TTL cache
that is invalidated on every write.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from src.error_handler import NotFoundError, PersistenceError, ValidationError
from src.integrations.contracts.interfaces import ServiceType
from src.utils.config_loader import PricingCatalog

logger = logging.getLogger(__name__)


class PricingService:
    def __init__(self, db: Any, cache: Any, catalog: PricingCatalog) -> None:
        self.db = db
        self.cache = cache
        self.catalog = catalog

    async def seed_if_empty(self) -> int:
        existing = await self.db.count_pricing()
        if existing:
            logger.info("Found %d existing pricing entries in database", existing)
            return 0

        entries = [
            (service_type.value, sub_service, price)
            for service_type, services in self.catalog.services.items()
            for sub_service, price in services.items()
        ]
        inserted = await self.db.insert_pricing_entries(entries)
        logger.info("Initialized %d default pricing entries", inserted)
        return inserted

    async def resolve_price(self, service_type: str, sub_service: str) -> Optional[int]:
        """Positive integer price, or None when the pair is not priced."""
        cached = await self.cache.get_price(service_type, sub_service)
        if cached is not None:
            return cached

        price: Optional[int] = None
        try:
            entry = await self.db.get_pricing(service_type, sub_service)
            if entry is not None:
                price = int(entry.price)
        except PersistenceError:
            logger.warning("Pricing store unavailable, falling back to catalog for %s/%s", service_type, sub_service)

        if price is None:
            price = self.catalog.price_for(service_type, sub_service)
        if price is None or price <= 0:
            return None

        await self.cache.set_price(service_type, sub_service, price)
        return price

    async def require_price(self, service_type: str, sub_service: str) -> int:
        price = await self.resolve_price(service_type, sub_service)
        if price is None:
            raise ValidationError(
                "The selected service is not available or pricing not configured.",
                error="Invalid service",
            )
        return price

    async def update_price(self, service_type: str, sub_service: str, price: Any) -> Tuple[int, int]:
        """Write a new price to the store. Returns (old_price, new_price)."""
        missing = {
            name: f"{name} is required"
            for name, value in (("serviceType", service_type), ("subService", sub_service), ("price", price))
            if value is None or value == ""
        }
        if missing:
            raise ValidationError("Service type, sub-service and price are required.", fields=missing)
        if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
            raise ValidationError("Price must be a whole number greater than 0.", error="Invalid price")

        try:
            ServiceType(service_type)
        except ValueError:
            raise NotFoundError(f"Service type '{service_type}' does not exist.", error="Service type not found")
        if not self.catalog.has_entry(service_type, sub_service):
            raise NotFoundError(
                f"Sub-service '{sub_service}' does not exist in '{service_type}'.",
                error="Sub-service not found",
            )

        old_price = await self.resolve_price(service_type, sub_service)
        await self.db.upsert_pricing(service_type, sub_service, price)
        await self.cache.invalidate(service_type, sub_service)

        logger.info("Price updated: %s - %s: %s -> %s", service_type, sub_service, old_price, price)
        return int(old_price or 0), price

    async def combined_pricing(self) -> Dict[str, Dict[str, int]]:
        combined = self.catalog.as_dict()
        try:
            overrides = await self.db.list_pricing()
        except PersistenceError:
            logger.warning("Pricing store unavailable, serving catalog prices only")
            return combined

        for entry in overrides:
            if entry.service_type in combined:
                combined[entry.service_type][entry.sub_service] = int(entry.price)
        return combined
