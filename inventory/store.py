"""
inventory/store.py -- SQLAlchemy-backed persistence layer for dealer stock.

Uses SQLAlchemy Core (not ORM) so the dataclasses in inventory/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. CarStore is the repository; _row_to_car is
the mapper. Route handlers never touch SQL directly.

Scoping: every multi-row read takes a dealer_id and filters on it in SQL.
remove_car() also requires dealer_id in its WHERE clause, so even a caller
that skipped the ownership check could not delete another dealer's car.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CarStore("sqlite:///dealerapi.db")
    car_id = store.add_car(Car(make="BMW", model="X5", year=2020, number_plate="AB12CDE", dealer_id=1))
    store.search_cars(1, "BMW", "X5")
    store.get_stock_levels(1, "BMW", "X5")   # StockLevel("BMW", "X5", 1)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, create_engine, event, func, select
from sqlalchemy.engine import Engine

from core.config import get_settings
from inventory.models import Car, StockLevel

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_cars = Table(
    "cars",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("make", String(100), nullable=False),
    Column("model", String(100), nullable=False),
    Column("year", Integer, nullable=False),
    Column("number_plate", String(20), nullable=False),
    Column("dealer_id", Integer, nullable=False),  # dealers.id; not a SQL FK, dealers live in auth/store.py
    Column("created_at", String(32), nullable=False),
    Index("ix_cars_dealer_make_model", "dealer_id", "make", "model"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CarStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool, so one connection
            # may be used from several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def add_car(self, car: Car) -> int:
        """Insert a car and return its assigned database ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _cars.insert().values(
                    make=car.make,
                    model=car.model,
                    year=car.year,
                    number_plate=car.number_plate,
                    dealer_id=car.dealer_id,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_car(self, car_id: int) -> Optional[Car]:
        """Fetch a single car by ID regardless of owner. Returns None if not found.

        Callers must run authorize_ownership() on the result before exposing it.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_cars.select().where(_cars.c.id == car_id)).fetchone()
        return _row_to_car(row) if row is not None else None

    def remove_car(self, car_id: int, dealer_id: int) -> bool:
        """Delete a car owned by dealer_id. Returns False if not found or wrong owner."""
        with self.engine.connect() as conn:
            result = conn.execute(_cars.delete().where((_cars.c.id == car_id) & (_cars.c.dealer_id == dealer_id)))
            conn.commit()
        return result.rowcount > 0

    def list_cars(self, dealer_id: int) -> list[Car]:
        """Return every car owned by dealer_id, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_cars.select().where(_cars.c.dealer_id == dealer_id).order_by(_cars.c.id)).fetchall()
        return [_row_to_car(r) for r in rows]

    def search_cars(self, dealer_id: int, make: str, model: str) -> list[Car]:
        """Return dealer_id's cars matching make and model exactly."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _cars.select()
                .where((_cars.c.dealer_id == dealer_id) & (_cars.c.make == make) & (_cars.c.model == model))
                .order_by(_cars.c.id)
            ).fetchall()
        return [_row_to_car(r) for r in rows]

    def get_stock_levels(self, dealer_id: int, make: str, model: str) -> StockLevel:
        """Count dealer_id's cars for one make/model pair.

        GROUP BY yields no row at all when nothing matches; that case is
        reported as a zero count for the requested pair.
        """
        stmt = (
            select(_cars.c.make, _cars.c.model, func.count().label("stock_level"))
            .where((_cars.c.dealer_id == dealer_id) & (_cars.c.make == make) & (_cars.c.model == model))
            .group_by(_cars.c.make, _cars.c.model)
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        if row is None:
            return StockLevel(make=make, model=model, stock_level=0)
        return StockLevel(make=row.make, model=row.model, stock_level=row.stock_level)

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(select(1)).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_car(row) -> Car:
    return Car(
        id=row.id,
        make=row.make,
        model=row.model,
        year=row.year,
        number_plate=row.number_plate,
        dealer_id=row.dealer_id,
        created_at=row.created_at,
    )
