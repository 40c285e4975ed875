from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping

from .errors import UnknownAddonError, UnknownResourceError, UnsupportedDurationError


@dataclass(frozen=True)
class ResourceType:
    id: str
    name: str
    hourly_price: int
    unit_count: int

    def __post_init__(self) -> None:
        if self.unit_count < 1:
            raise ValueError("unit_count must be >= 1")
        if self.hourly_price < 0:
            raise ValueError("hourly_price must be >= 0")


@dataclass(frozen=True)
class AddOn:
    id: str
    label: str
    price: int

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError("add-on price must be >= 0")


DEFAULT_RESOURCE_TYPES: tuple[ResourceType, ...] = (
    ResourceType(id="ps5", name="PlayStation 5", hourly_price=2000, unit_count=5),
    ResourceType(id="ps4", name="PlayStation 4", hourly_price=1000, unit_count=8),
    ResourceType(id="xbox", name="Xbox Series X", hourly_price=2000, unit_count=4),
    ResourceType(id="vr", name="Réalité Virtuelle", hourly_price=5000, unit_count=2),
)

DEFAULT_ADDONS: tuple[AddOn, ...] = (
    AddOn(id="snacks", label="Pack Snacks", price=2000),
    AddOn(id="drinks", label="Pack Boissons", price=1500),
    AddOn(id="premium", label="Manettes Premium", price=1000),
    AddOn(id="private", label="Espace Privé", price=5000),
)

DEFAULT_DURATION_MULTIPLIERS: Mapping[int, Decimal] = {
    30: Decimal("0.5"),
    60: Decimal("1"),
    90: Decimal("1.5"),
    120: Decimal("2"),
    180: Decimal("3"),
}

# Players sharing one unit; the first is included in the hourly rate.
DEFAULT_MAX_PLAYERS = 4


class ResourceCatalog:
    """Read-only lookup over bookable resource types, add-ons and duration buckets."""

    def __init__(
        self,
        resource_types: Iterable[ResourceType] = DEFAULT_RESOURCE_TYPES,
        addons: Iterable[AddOn] = DEFAULT_ADDONS,
        duration_multipliers: Mapping[int, Decimal] = DEFAULT_DURATION_MULTIPLIERS,
        max_players: int = DEFAULT_MAX_PLAYERS,
    ) -> None:
        if max_players < 1:
            raise ValueError("max_players must be >= 1")
        self._resource_types = {rt.id: rt for rt in resource_types}
        self._addons = {addon.id: addon for addon in addons}
        self._multipliers = dict(duration_multipliers)
        self.max_players = max_players

    def get(self, resource_type_id: str) -> ResourceType:
        try:
            return self._resource_types[resource_type_id]
        except KeyError:
            raise UnknownResourceError(resource_type_id) from None

    def get_addon(self, addon_id: str) -> AddOn:
        try:
            return self._addons[addon_id]
        except KeyError:
            raise UnknownAddonError(addon_id) from None

    def multiplier(self, duration_minutes: int) -> Decimal:
        try:
            return self._multipliers[duration_minutes]
        except KeyError:
            raise UnsupportedDurationError(duration_minutes) from None

    def list_resource_types(self) -> list[ResourceType]:
        return list(self._resource_types.values())

    def list_addons(self) -> list[AddOn]:
        return list(self._addons.values())

    def supported_durations(self) -> list[int]:
        return sorted(self._multipliers)


_default_catalog = ResourceCatalog()


def default_catalog() -> ResourceCatalog:
    return _default_catalog
