# Services/booking_engine.py
"""
Conflict resolution and series mutation for car reservations.

Every check-then-write sequence runs inside a single store transaction, so a
batch (series create, this-and-future edit or delete) is either written in
full or not at all.
"""
import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from Models import Reservation
from Services.errors import Conflict, InvalidInterval, InvalidRecurrenceRule, NotFound, WholeDayBlocked
from Services.recurrence import (
    DEFAULT_HARD_CAP,
    Occurrence,
    RecurrenceRule,
    days_spanned,
    expand,
    normalize_whole_day,
    parse_rule,
)
from Services.reservation_store import ReservationStore

logger = logging.getLogger(__name__)


class EditScope(str, Enum):
    THIS_OCCURRENCE = "this_occurrence"
    THIS_AND_FUTURE = "this_and_future"


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap. Touching endpoints do not overlap."""
    return start_a < end_b and end_a > start_b


def make_interval(start: datetime, end: datetime, is_whole_day: bool = False) -> Occurrence:
    if is_whole_day:
        start, end = normalize_whole_day(start, end)
    if end <= start:
        raise InvalidInterval()
    return Occurrence(start, end)


def _first_self_overlap(intervals: List[Occurrence]):
    # Intervals are chronological with equal durations, neighbours are enough
    for previous, current in zip(intervals, intervals[1:]):
        if overlaps(previous.start, previous.end, current.start, current.end):
            return previous, current
    return None


class BookingEngine:
    def __init__(self, store: ReservationStore, hard_cap: int = DEFAULT_HARD_CAP):
        self.store = store
        self.hard_cap = hard_cap

    # Checks

    def _first_conflict(
        self,
        car_id: str,
        start: datetime,
        end: datetime,
        excluded: Iterable[str] = (),
    ) -> Optional[Reservation]:
        excluded = set(excluded)
        for reservation in self.store.find_overlapping(car_id, start, end):
            if reservation.id in excluded:
                continue
            if overlaps(start, end, reservation.start_time, reservation.end_time):
                return reservation
        return None

    def has_conflict(
        self,
        car_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> Optional[Reservation]:
        """
        Return the earliest reservation on the car overlapping [start, end).

        exclude_id lets an edit ignore the reservation it replaces.
        """
        return self._first_conflict(car_id, start, end, [exclude_id] if exclude_id else [])

    def whole_day_block(self, car_id: str, day: date) -> Optional[Reservation]:
        """Return the whole-day reservation holding the car on that day, if any."""
        with self.store.reads():
            return self._day_block(car_id, day)

    def _day_block(self, car_id: str, day: date) -> Optional[Reservation]:
        blocking = self.store.find_whole_day_on(car_id, day)
        return blocking[0] if blocking else None

    def _ensure_available(
        self,
        car_id: str,
        interval: Occurrence,
        is_whole_day: bool,
        excluded: Iterable[str] = (),
        check_day_block: bool = False,
        occurrence_start: Optional[datetime] = None,
    ):
        excluded = set(excluded)
        if check_day_block and not is_whole_day:
            for day in days_spanned(interval.start, interval.end):
                block = self._day_block(car_id, day)
                if block is not None and block.id not in excluded:
                    logger.warning(f"Car {car_id} is blocked on {day} by whole-day reservation {block.id}")
                    raise WholeDayBlocked(block.owner_name, day, block.id)

        conflict = self._first_conflict(car_id, interval.start, interval.end, excluded)
        if conflict is not None:
            logger.warning(
                f"Car {car_id} {interval.start} - {interval.end} conflicts with reservation {conflict.id}"
            )
            raise Conflict(
                conflict.owner_name,
                conflict.start_time,
                conflict.end_time,
                reservation_id=conflict.id,
                occurrence_start=occurrence_start,
            )

    def _require(self, reservation_id: str) -> Reservation:
        reservation = self.store.get(reservation_id)
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        return reservation

    def _require_car(self, car_id: str):
        if not self.store.car_exists(car_id):
            raise NotFound(f"Car {car_id} not found")

    # Reads

    def get_reservation(self, reservation_id: str) -> Reservation:
        with self.store.reads():
            return self._require(reservation_id)

    def list_reservations(self, start: datetime, end: datetime, car_id: Optional[str] = None) -> List[Reservation]:
        if end < start:
            raise InvalidInterval("Window end must not be before window start")
        with self.store.reads():
            return self.store.find_in_window(start, end, car_id)

    @contextmanager
    def _locked(self, reservation_id: str, car_id: Optional[str] = None):
        """
        Open a transaction holding the reservation's car (and car_id, if given).

        The row is read again once the locks are held. If it was moved to
        another car in the meantime, the locks are released and taken again
        for the car it is on now.
        """
        while True:
            with self.store.reads():
                current = self._require(reservation_id)
            cars = {current.car_id, car_id or current.car_id}
            with self.store.transaction(*cars):
                target = self._require(reservation_id)
                if target.car_id in cars:
                    yield target
                    return
            logger.info(f"Reservation {reservation_id} moved to car {target.car_id}, locking again")

    def _keep_rule_on_earliest(self, series_id: str):
        members = self.store.find_series(series_id)
        holder = next((member for member in members if member.recurrence_rule), None)
        if holder is None or holder.id == members[0].id:
            return
        self.store.update_many([
            (members[0].id, {"recurrence_rule": holder.recurrence_rule}),
            (holder.id, {"recurrence_rule": None}),
        ])

    # Create

    def create_reservation(
        self,
        car_id: str,
        owner_id: str,
        start: datetime,
        end: datetime,
        is_whole_day: bool = False,
        destination: Optional[str] = None,
    ) -> Reservation:
        interval = make_interval(start, end, is_whole_day)

        with self.store.transaction(car_id):
            self._require_car(car_id)
            self._ensure_available(car_id, interval, is_whole_day, check_day_block=True)
            reservation = Reservation(
                id=str(uuid.uuid4()),
                car_id=car_id,
                owner_id=owner_id,
                start_time=interval.start,
                end_time=interval.end,
                is_whole_day=is_whole_day,
                destination=destination,
            )
            self.store.insert_many([reservation])

        logger.info(f"Created reservation {reservation.id} on car {car_id}")
        return reservation

    def create_series(
        self,
        car_id: str,
        owner_id: str,
        start: datetime,
        end: datetime,
        rule: Union[RecurrenceRule, Dict[str, Any]],
        is_whole_day: bool = False,
        destination: Optional[str] = None,
    ) -> List[Reservation]:
        """
        Expand the rule and book every occurrence, or none of them.

        The first problem found (in chronological order) aborts the request
        and is reported with the date of the offending occurrence.
        """
        rule = parse_rule(rule)
        anchor = make_interval(start, end, is_whole_day)
        occurrences = expand(anchor.start, anchor.end, rule, self.hard_cap)
        if not occurrences:
            raise InvalidRecurrenceRule("The recurrence rule does not produce any occurrence")
        if _first_self_overlap(occurrences):
            raise InvalidRecurrenceRule("Occurrences of this recurrence overlap each other")

        series_id = str(uuid.uuid4())
        with self.store.transaction(car_id):
            self._require_car(car_id)
            for occurrence in occurrences:
                self._ensure_available(
                    car_id,
                    occurrence,
                    is_whole_day,
                    check_day_block=True,
                    occurrence_start=occurrence.start,
                )
            reservations = [
                Reservation(
                    id=str(uuid.uuid4()),
                    car_id=car_id,
                    owner_id=owner_id,
                    start_time=occurrence.start,
                    end_time=occurrence.end,
                    is_whole_day=is_whole_day,
                    destination=destination,
                    series_id=series_id,
                    recurrence_rule=rule.to_json() if index == 0 else None,
                    is_exception=False,
                )
                for index, occurrence in enumerate(occurrences)
            ]
            self.store.insert_many(reservations)

        logger.info(f"Created series {series_id} with {len(reservations)} reservations on car {car_id}")
        return reservations

    # Edit

    def edit_reservation(
        self,
        reservation_id: str,
        start: datetime,
        end: datetime,
        is_whole_day: bool = False,
        destination: Optional[str] = None,
        car_id: Optional[str] = None,
        scope: EditScope = EditScope.THIS_OCCURRENCE,
    ) -> List[Reservation]:
        """
        Apply new times to a reservation, or to it and the later members of its series.

        With THIS_AND_FUTURE every member keeps its own calendar date and takes
        the requested time of day, duration and whole-day flag. Members already
        marked as exceptions are rewritten like any other member in range.
        """
        interval = make_interval(start, end, is_whole_day)

        with self._locked(reservation_id, car_id) as target:
            target_car = car_id or target.car_id
            if target_car != target.car_id:
                self._require_car(target_car)

            if target.series_id is None or EditScope(scope) == EditScope.THIS_OCCURRENCE:
                self._ensure_available(target_car, interval, is_whole_day, excluded=[target.id])
                fields = {
                    "car_id": target_car,
                    "start_time": interval.start,
                    "end_time": interval.end,
                    "is_whole_day": is_whole_day,
                    "destination": destination,
                }
                if target.series_id is not None:
                    fields["is_exception"] = True
                updated = self.store.update_many([(target.id, fields)])
                if target.series_id is not None:
                    self._keep_rule_on_earliest(target.series_id)
                logger.info(f"Updated reservation {target.id}")
                return updated

            members = self.store.find_by_series_from(target.series_id, target.start_time)
            if not members:
                raise NotFound(f"Series {target.series_id} has no reservations left")
            moved_ids = [member.id for member in members]
            duration = interval.end - interval.start
            planned = []
            for member in members:
                new_start = datetime.combine(member.start_time.date(), interval.start.time())
                planned.append(Occurrence(new_start, new_start + duration))

            if _first_self_overlap(planned):
                raise InvalidInterval("The new times make occurrences of the series overlap each other")
            for occurrence in planned:
                self._ensure_available(
                    target_car,
                    occurrence,
                    is_whole_day,
                    excluded=moved_ids,
                    occurrence_start=occurrence.start,
                )

            updated = self.store.update_many([
                (member.id, {
                    "car_id": target_car,
                    "start_time": occurrence.start,
                    "end_time": occurrence.end,
                    "is_whole_day": is_whole_day,
                    "destination": destination,
                })
                for member, occurrence in zip(members, planned)
            ])

        logger.info(f"Updated {len(updated)} reservations of series {target.series_id}")
        return updated

    # Delete

    def delete_reservation(
        self,
        reservation_id: str,
        scope: EditScope = EditScope.THIS_OCCURRENCE,
    ) -> List[str]:
        """Remove a reservation, or it and every later member of its series. Returns removed ids."""
        with self._locked(reservation_id) as target:
            if target.series_id is not None and EditScope(scope) == EditScope.THIS_AND_FUTURE:
                ids = [member.id for member in self.store.find_by_series_from(target.series_id, target.start_time)]
                if target.id not in ids:
                    ids.append(target.id)
            else:
                ids = [target.id]
                if target.series_id is not None and target.recurrence_rule:
                    # Keep the rule on whichever member is now the earliest
                    remaining = [m for m in self.store.find_series(target.series_id) if m.id != target.id]
                    if remaining:
                        self.store.update_many([(remaining[0].id, {"recurrence_rule": target.recurrence_rule})])
            self.store.delete_many(ids)

        logger.info(f"Deleted {len(ids)} reservation(s) starting from {reservation_id}")
        return ids
