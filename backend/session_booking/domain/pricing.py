from __future__ import annotations

from typing import Iterable

from .catalog import ResourceCatalog

DEFAULT_EXTRA_PLAYER_FEE = 500


def compute_total(
    catalog: ResourceCatalog,
    resource_type_id: str,
    duration_minutes: int,
    player_count: int,
    extra_ids: Iterable[str],
    *,
    extra_player_fee: int = DEFAULT_EXTRA_PLAYER_FEE,
) -> int:
    """
    Total price in the smallest currency unit.
    The first player is included in the hourly rate; fractional base prices are truncated.
    """
    resource = catalog.get(resource_type_id)
    base = int(resource.hourly_price * catalog.multiplier(duration_minutes))
    extras_total = sum(catalog.get_addon(extra_id).price for extra_id in sorted(set(extra_ids)))
    player_surcharge = max(0, player_count - 1) * extra_player_fee
    return base + extras_total + player_surcharge
