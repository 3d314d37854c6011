# Services/reservation_store.py
"""
SQLAlchemy storage for reservations.

Writes happen inside ``transaction()``, which holds a per-car lock and row
locks on the affected cars until commit, so a conflict check and the write
that follows it cannot interleave with another writer on the same car. Reads
outside a transaction go through ``reads()``.
"""
import logging
import threading
from collections import defaultdict
from contextlib import ExitStack, contextmanager
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import exc
from sqlalchemy.orm import Session, joinedload

from Models import Car, Reservation
from Services.errors import NotFound, StorageFailure

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_car_locks = defaultdict(threading.RLock)


def _lock_for(car_id: str):
    with _registry_lock:
        return _car_locks[car_id]


class ReservationStore:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return (
            self.db.query(Reservation)
            .options(joinedload(Reservation.owner))
            .populate_existing()
        )

    @contextmanager
    def transaction(self, *car_ids: str):
        """
        Run a check-then-write sequence atomically for the given cars.

        Everything written inside the block is committed together, or rolled
        back together if anything raises.
        """
        ids = sorted({car_id for car_id in car_ids if car_id})
        with ExitStack() as stack:
            for car_id in ids:
                stack.enter_context(_lock_for(car_id))
            try:
                if ids:
                    # Row locks serialize writers across processes (no-op on SQLite)
                    self.db.query(Car).filter(Car.id.in_(ids)).with_for_update().all()
                yield self
                self.db.commit()
            except exc.SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Rolled back reservation transaction: {e}", exc_info=True)
                raise StorageFailure(e) from e
            except BaseException:
                self.db.rollback()
                raise

    @contextmanager
    def reads(self):
        """Run lock-free reads, reporting database errors as StorageFailure."""
        try:
            yield self
        except exc.SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Reservation read failed: {e}", exc_info=True)
            raise StorageFailure(e) from e

    def get(self, reservation_id: str) -> Optional[Reservation]:
        return self._query().filter(Reservation.id == reservation_id).first()

    def car_exists(self, car_id: str) -> bool:
        return self.db.query(Car.id).filter(Car.id == car_id).first() is not None

    def find_overlapping(self, car_id: str, start: datetime, end: datetime) -> List[Reservation]:
        return (
            self._query()
            .filter(
                Reservation.car_id == car_id,
                Reservation.start_time < end,
                Reservation.end_time > start,
            )
            .order_by(Reservation.start_time, Reservation.id)
            .all()
        )

    def find_whole_day_on(self, car_id: str, day: date) -> List[Reservation]:
        day_start = datetime.combine(day, time.min)
        return [
            reservation
            for reservation in self.find_overlapping(car_id, day_start, day_start + timedelta(days=1))
            if reservation.is_whole_day
        ]

    def find_by_series_from(self, series_id: str, from_start: datetime) -> List[Reservation]:
        return (
            self._query()
            .filter(
                Reservation.series_id == series_id,
                Reservation.start_time >= from_start,
            )
            .order_by(Reservation.start_time, Reservation.id)
            .all()
        )

    def find_series(self, series_id: str) -> List[Reservation]:
        return (
            self._query()
            .filter(Reservation.series_id == series_id)
            .order_by(Reservation.start_time, Reservation.id)
            .all()
        )

    def find_in_window(self, start: datetime, end: datetime, car_id: Optional[str] = None) -> List[Reservation]:
        query = self._query().filter(
            Reservation.end_time >= start,
            Reservation.start_time <= end,
        )
        if car_id:
            query = query.filter(Reservation.car_id == car_id)
        return query.order_by(Reservation.start_time, Reservation.id).all()

    def insert_many(self, reservations: List[Reservation]) -> List[Reservation]:
        self.db.add_all(reservations)
        self.db.flush()
        return reservations

    def update_many(self, updates: Iterable[Tuple[str, Dict[str, Any]]]) -> List[Reservation]:
        updated = []
        for reservation_id, fields in updates:
            reservation = self.db.get(Reservation, reservation_id)
            if reservation is None:
                raise NotFound(f"Reservation {reservation_id} no longer exists")
            for field, value in fields.items():
                setattr(reservation, field, value)
            reservation.updated_at = datetime.utcnow()
            updated.append(reservation)
        self.db.flush()
        return updated

    def delete_many(self, reservation_ids: Iterable[str]) -> int:
        ids = list(reservation_ids)
        if not ids:
            return 0
        deleted = (
            self.db.query(Reservation)
            .filter(Reservation.id.in_(ids))
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted
