"""
auth/store.py -- SQLAlchemy Core persistence layer for dealers and sessions.

Pattern: Repository + Data Mapper (same as inventory/store.py).
DealerStore is the repository; _row_to_dealer / _row_to_session are the mappers.
The SessionAuthority and route code never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Single-session invariant:
  sessions.dealer_id is UNIQUE and upsert_session() writes with a dialect
  upsert (INSERT ... ON CONFLICT (dealer_id) DO UPDATE) on SQLite and
  PostgreSQL. Concurrent logins for one dealer therefore leave exactly one
  row: last writer wins. Other dialects fall back to update-then-insert inside
  one transaction.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

from auth.models import Dealer, SessionToken
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_dealers = Table(
    "dealers",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("dealer_id", Integer, nullable=False, unique=True),
    Column("token_hash", String(64), nullable=False),  # HMAC-SHA256 hex
    Column("issued_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
)

_UPSERT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_iso(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class DealerStore:
    """Repository for Dealer and SessionToken entities.

    Usage:
        store = DealerStore("sqlite:///dealerapi.db")
        store.create_dealer(Dealer(name="northside", hashed_password=hash_password("secret")))
        dealer = store.get_by_name("northside")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Dealer queries
    # ------------------------------------------------------------------

    def has_dealers(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM dealers")).scalar()
        return (result or 0) > 0

    def create_dealer(self, dealer: Dealer) -> int:
        """Insert a new dealer and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the name is already taken.
        Provisioning only -- the API never calls this.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _dealers.insert().values(
                    name=dealer.name,
                    hashed_password=dealer.hashed_password,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_name(self, name: str) -> Dealer | None:
        """Look up a dealer by exact name (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_dealers.select().where(_dealers.c.name == name)).fetchone()
        return _row_to_dealer(row) if row is not None else None

    def get_by_id(self, dealer_id: int) -> Dealer | None:
        with self.engine.connect() as conn:
            row = conn.execute(_dealers.select().where(_dealers.c.id == dealer_id)).fetchone()
        return _row_to_dealer(row) if row is not None else None

    def list_dealers(self) -> list[Dealer]:
        with self.engine.connect() as conn:
            rows = conn.execute(_dealers.select().order_by(_dealers.c.name)).fetchall()
        return [_row_to_dealer(r) for r in rows]

    # ------------------------------------------------------------------
    # Session queries
    # ------------------------------------------------------------------

    def get_session(self, dealer_id: int) -> SessionToken | None:
        """Return the dealer's live session row, or None if they never logged in."""
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.dealer_id == dealer_id)).fetchone()
        return _row_to_session(row) if row is not None else None

    def upsert_session(self, session: SessionToken) -> None:
        """Write the dealer's session row, replacing any existing one in place.

        The previous token hash is overwritten, so the old token stops
        matching immediately.
        """
        values = {
            "dealer_id": session.dealer_id,
            "token_hash": session.token_hash,
            "issued_at": (session.issued_at or datetime.now(timezone.utc)).isoformat(),
            "expires_at": session.expires_at.isoformat(),
        }
        insert = _UPSERT_DIALECTS.get(self.engine.dialect.name)
        with self.engine.begin() as conn:
            if insert is not None:
                stmt = insert(_sessions).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[_sessions.c.dealer_id],
                    set_={
                        "token_hash": stmt.excluded.token_hash,
                        "issued_at": stmt.excluded.issued_at,
                        "expires_at": stmt.excluded.expires_at,
                    },
                )
                conn.execute(stmt)
                return
            result = conn.execute(
                _sessions.update().where(_sessions.c.dealer_id == session.dealer_id).values(**values)
            )
            if result.rowcount == 0:
                conn.execute(_sessions.insert().values(**values))

    def extend_session(self, dealer_id: int, token_hash: str, expires_at: datetime) -> bool:
        """Push out expires_at for the session, but only if token_hash is still current.

        Returns False when the dealer has since logged in again (token rotated)
        or the row was revoked, so a stale assertion can never revive a session.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.dealer_id == dealer_id) & (_sessions.c.token_hash == token_hash))
                .values(expires_at=expires_at.isoformat())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_session(self, dealer_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.dealer_id == dealer_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            return conn.execute(select(1)).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_dealer(row) -> Dealer:
    return Dealer(
        id=row.id,
        name=row.name,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )


def _row_to_session(row) -> SessionToken:
    return SessionToken(
        dealer_id=row.dealer_id,
        token_hash=row.token_hash,
        issued_at=_parse_iso(row.issued_at),
        expires_at=_parse_iso(row.expires_at),
    )
