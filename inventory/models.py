"""
inventory/models.py -- Domain dataclasses for dealer stock.

These are pure data containers with zero logic. Queries live in
inventory/store.py; ownership rules live in auth/dependencies.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Car:
    """One vehicle in a dealer's stock.

    dealer_id is always the authenticated caller's id at insert time; the API
    never takes it from the request body.

    id is None before the record is written to the database.
    """

    make: str
    model: str
    year: int
    number_plate: str
    dealer_id: int
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class StockLevel:
    """Count of a dealer's cars matching one make/model pair."""

    make: str
    model: str
    stock_level: int
