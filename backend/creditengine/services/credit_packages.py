from __future__ import annotations

import logging
from dataclasses import dataclass

from ..platform.config import settings

logger = logging.getLogger("shipshow.credit_packages")


@dataclass(frozen=True)
class CreditPackage:
    id: str
    credits: int
    bonus: int
    price: int
    label: str

    @property
    def total_credits(self) -> int:
        return self.credits + self.bonus


def credit_package_catalog() -> dict[str, CreditPackage]:
    """Server-side package table. Client-declared package terms are never trusted."""
    output: dict[str, CreditPackage] = {}
    for package_id, package in settings.credit_packages_raw.items():
        if not isinstance(package, dict):
            logger.warning("Skipping malformed credit package %s", package_id)
            continue
        try:
            credits = int(package.get("credits") or 0)
            bonus = int(package.get("bonus") or 0)
            price = int(package.get("price") or 0)
        except (TypeError, ValueError):
            logger.warning("Skipping credit package %s with non-numeric terms", package_id)
            continue
        if credits <= 0 or bonus < 0 or price <= 0:
            logger.warning("Skipping credit package %s with invalid terms", package_id)
            continue
        output[str(package_id)] = CreditPackage(
            id=str(package_id),
            credits=credits,
            bonus=bonus,
            price=price,
            label=str(package.get("label") or package_id),
        )
    return output


def resolve_package(package_id: str) -> CreditPackage | None:
    return credit_package_catalog().get(str(package_id or "").strip())
