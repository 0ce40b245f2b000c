"""Watch store — persistence for price watches (in-memory or SQL)."""

import asyncio
import logging
import uuid
from dataclasses import fields as dataclass_fields
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from farewatch.domain import Watch, utcnow
from farewatch.exceptions import WatchConflictError, WatchNotFoundError
from farewatch.models.watch import PriceWatch

logger = logging.getLogger(__name__)

# Fields callers may never set through update()
_PROTECTED = {"id", "created_at", "updated_at", "version"}
_WATCH_FIELDS = {f.name for f in dataclass_fields(Watch)}


def new_watch_id() -> str:
    return f"watch_{uuid.uuid4().hex}"


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive timestamps; stored values are always UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _bump(previous: datetime) -> datetime:
    previous = _aware(previous)
    now = utcnow()
    return now if now > previous else previous


def _check_fields(changes: dict[str, Any]):
    unknown = set(changes) - _WATCH_FIELDS
    if unknown:
        raise ValueError(f"Unknown watch fields: {sorted(unknown)}")
    protected = set(changes) & _PROTECTED
    if protected:
        raise ValueError(f"Watch fields cannot be updated directly: {sorted(protected)}")


class WatchStore(Protocol):
    async def create(self, fields: dict[str, Any]) -> Watch: ...

    async def get(self, watch_id: str) -> Watch | None: ...

    async def update(
        self, watch_id: str, changes: dict[str, Any], expected_version: int | None = None
    ) -> Watch: ...

    async def list_for_user(self, user_id: str) -> list[Watch]: ...

    async def list_active(self) -> list[Watch]: ...

    async def delete(self, watch_id: str) -> bool: ...


class InMemoryWatchStore:
    """Dict-backed store. Returned watches are copies; mutate through update()."""

    def __init__(self):
        self._watches: dict[str, Watch] = {}
        self._lock = asyncio.Lock()

    async def create(self, fields: dict[str, Any]) -> Watch:
        now = utcnow()
        watch = Watch(
            **{k: v for k, v in fields.items() if k not in _PROTECTED},
            id=new_watch_id(),
            created_at=now,
            updated_at=now,
            version=1,
        )
        async with self._lock:
            self._watches[watch.id] = watch
        logger.info(f"Created watch {watch.id} ({watch.route})")
        return replace(watch)

    async def get(self, watch_id: str) -> Watch | None:
        watch = self._watches.get(watch_id)
        return replace(watch) if watch else None

    async def update(
        self, watch_id: str, changes: dict[str, Any], expected_version: int | None = None
    ) -> Watch:
        _check_fields(changes)
        async with self._lock:
            current = self._watches.get(watch_id)
            if current is None:
                raise WatchNotFoundError(watch_id)
            if expected_version is not None and current.version != expected_version:
                raise WatchConflictError(watch_id, expected_version, current.version)

            updated = replace(
                current,
                **changes,
                updated_at=_bump(current.updated_at),
                version=current.version + 1,
            )
            self._watches[watch_id] = updated
        return replace(updated)

    async def list_for_user(self, user_id: str) -> list[Watch]:
        watches = [w for w in self._watches.values() if w.user_id == user_id]
        watches.sort(key=lambda w: w.created_at, reverse=True)
        return [replace(w) for w in watches]

    async def list_active(self) -> list[Watch]:
        watches = [w for w in self._watches.values() if w.active]
        watches.sort(key=lambda w: w.created_at)
        return [replace(w) for w in watches]

    async def delete(self, watch_id: str) -> bool:
        async with self._lock:
            return self._watches.pop(watch_id, None) is not None


# Watch attribute -> PriceWatch column where the names differ
_COLUMN_NAMES = {"start": "start_date", "end": "end_date"}


def _to_columns(changes: dict[str, Any]) -> dict[str, Any]:
    values = {}
    for key, value in changes.items():
        if isinstance(value, float) and key.endswith("_usd"):
            value = Decimal(str(value))
        values[_COLUMN_NAMES.get(key, key)] = value
    return values


def _money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _row_to_watch(row: PriceWatch) -> Watch:
    return Watch(
        id=row.id,
        user_id=row.user_id,
        origin=row.origin,
        destination=row.destination,
        start=row.start_date,
        end=row.end_date,
        trip_type=row.trip_type,
        flex_days=row.flex_days,
        cabin=row.cabin,
        max_stops=row.max_stops,
        adults=row.adults,
        currency=row.currency,
        target_usd=float(row.target_usd),
        active=row.active,
        last_best_usd=_money(row.last_best_usd),
        last_notified_usd=_money(row.last_notified_usd),
        email=row.email,
        provider=row.provider,
        last_provider=row.last_provider,
        last_source_link=row.last_source_link,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        version=row.version,
    )


class SqlWatchStore:
    """Async SQLAlchemy store over the price_watches table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, fields: dict[str, Any]) -> Watch:
        now = utcnow()
        values = _to_columns({k: v for k, v in fields.items() if k not in _PROTECTED})
        row = PriceWatch(id=new_watch_id(), created_at=now, updated_at=now, version=1, **values)
        async with self.session_factory() as db:
            db.add(row)
            await db.commit()
            await db.refresh(row)
            logger.info(f"Created watch {row.id} ({row.origin} -> {row.destination})")
            return _row_to_watch(row)

    async def get(self, watch_id: str) -> Watch | None:
        async with self.session_factory() as db:
            row = await db.get(PriceWatch, watch_id)
            return _row_to_watch(row) if row else None

    async def update(
        self, watch_id: str, changes: dict[str, Any], expected_version: int | None = None
    ) -> Watch:
        _check_fields(changes)
        async with self.session_factory() as db:
            current = await db.get(PriceWatch, watch_id)
            if current is None:
                raise WatchNotFoundError(watch_id)
            version = expected_version if expected_version is not None else current.version

            stmt = (
                update(PriceWatch)
                .where(PriceWatch.id == watch_id, PriceWatch.version == version)
                .values(
                    **_to_columns(changes),
                    version=PriceWatch.version + 1,
                    updated_at=_bump(current.updated_at),
                )
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(stmt)
            if result.rowcount != 1:
                await db.rollback()
                raise WatchConflictError(watch_id, version, current.version)
            await db.commit()

            row = await db.get(PriceWatch, watch_id, populate_existing=True)
            return _row_to_watch(row)

    async def list_for_user(self, user_id: str) -> list[Watch]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(PriceWatch)
                .where(PriceWatch.user_id == user_id)
                .order_by(PriceWatch.created_at.desc())
            )
            return [_row_to_watch(r) for r in result.scalars().all()]

    async def list_active(self) -> list[Watch]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(PriceWatch)
                .where(PriceWatch.active == True)  # noqa: E712
                .order_by(PriceWatch.created_at)
            )
            return [_row_to_watch(r) for r in result.scalars().all()]

    async def delete(self, watch_id: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(delete(PriceWatch).where(PriceWatch.id == watch_id))
            await db.commit()
            return result.rowcount > 0
