# Overview: Pure stock-level helpers and restock analytics; no database access.

"""
Stock helpers work on anything with the Product stock attributes
(current_stock, reserved_stock, reorder_point and the restock analytics
columns), so they are usable on ORM rows and plain test doubles alike.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..time_utils import days_between

# Restock frequency assumed until a product has two restocks on record
DEFAULT_RESTOCK_FREQUENCY_DAYS = 30


def needs_restock(product, threshold: float = 1.0) -> bool:
    return product.current_stock <= product.reorder_point * threshold


def needs_urgent_restock(product) -> bool:
    """Oversold, empty, or under half the reorder point."""
    return product.current_stock <= 0 or product.current_stock <= product.reorder_point * 0.5


def get_backorder_quantity(product) -> float:
    return abs(min(0, product.current_stock))


def is_oversold(product) -> bool:
    return product.current_stock < 0


def get_available_stock(product) -> float:
    """Sellable stock for display; never negative."""
    return max(0, product.current_stock - (product.reserved_stock or 0))


def restock_deficit(product, threshold: float = 1.0) -> float:
    return product.reorder_point * threshold - product.current_stock


def estimate_days_until_stockout(product) -> Optional[int]:
    """
    Whole days of stock left at the usage rate implied by restock history.

    Needs at least two restocks and a positive average quantity.
    """
    avg = product.average_restock_quantity or 0
    count = product.restock_count or 0
    if avg <= 0 or count <= 1:
        return None
    frequency = product.restock_frequency or DEFAULT_RESTOCK_FREQUENCY_DAYS
    daily_usage = avg / frequency
    if daily_usage <= 0:
        return None
    return math.floor(product.current_stock / daily_usage)


@dataclass(frozen=True)
class RestockAnalytics:
    restock_count: int
    average_restock_quantity: float
    restock_frequency: int
    last_restock_date: datetime


def calculate_restock_analytics(product, quantity: float, now: datetime) -> RestockAnalytics:
    """
    Analytics after restocking `quantity` (base units) at `now`.

    Average quantity is an incremental running mean. Frequency is the
    running mean of the gaps between restocks, in whole days (at least 1).
    """
    prev_count = product.restock_count or 0
    count = prev_count + 1
    if prev_count == 0:
        average = quantity
    else:
        average = ((product.average_restock_quantity or 0) * prev_count + quantity) / count

    frequency = product.restock_frequency or DEFAULT_RESTOCK_FREQUENCY_DAYS
    gap = days_between(product.last_restock_date, now)
    if gap is not None and prev_count >= 1:
        gaps_seen = prev_count - 1
        if gaps_seen == 0:
            frequency = gap
        else:
            frequency = round((frequency * gaps_seen + gap) / (gaps_seen + 1))
        frequency = max(1, frequency)

    return RestockAnalytics(
        restock_count=count,
        average_restock_quantity=average,
        restock_frequency=int(frequency),
        last_restock_date=now,
    )
