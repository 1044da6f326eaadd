"""Repository layer responsible for all database access."""

from __future__ import annotations

import random
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from pricing_engine.domain.models import (
    BLOCKING_STATUSES,
    OCCUPYING_STATUSES,
    UNBOOKABLE_ROOM_STATUSES,
    Conflict,
    DateRange,
    HistoricalBasis,
    PricePoint,
    ReservationRecord,
    RoomRecord,
)
from pricing_engine.domain.seasons import period_profile, seasonality_factor
from pricing_engine.utils.config import Settings, get_settings
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)


# Room-type demand is a nudge around 1.0, not a second occupancy signal.
ROOM_DEMAND_FLOOR = 0.8
ROOM_DEMAND_CEILING = 1.2
ROOM_DEMAND_LOOKBACK_DAYS = 30

_SEED_ROOMS = [
    ("101", "standard", 2, 8000.0),
    ("102", "standard", 2, 8000.0),
    ("103", "standard", 2, 8000.0),
    ("104", "standard", 2, 8000.0),
    ("201", "deluxe", 3, 12000.0),
    ("202", "deluxe", 3, 12000.0),
    ("203", "deluxe", 3, 12000.0),
    ("301", "suite", 4, 20000.0),
    ("302", "suite", 4, 20000.0),
    ("401", "family", 5, 15000.0),
    ("402", "family", 5, 15000.0),
]

_SEED_NO_SHOW_PROBABILITY = {
    "standard": 0.12,
    "deluxe": 0.08,
    "suite": 0.03,
    "family": 0.06,
}


@dataclass(frozen=True)
class NightlyOccupancy:
    """One room-night of history used for forecast training."""

    room_id: int
    room_type: str
    night: date
    occupied: int


def _parse_date(value: str) -> date:
    return date.fromisoformat(str(value))


def _nights_within(stay: DateRange, window: DateRange) -> int:
    start = max(stay.check_in, window.check_in)
    end = min(stay.check_out, window.check_out)
    return max(0, (end - start).days)


def _placeholders(values: Sequence[object]) -> str:
    return ",".join("?" for _ in values)


class DataRepository:
    """Encapsulates SQLite access so engine logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        number TEXT NOT NULL UNIQUE,
                        room_type TEXT NOT NULL,
                        capacity INTEGER NOT NULL CHECK (capacity > 0),
                        base_price REAL NOT NULL CHECK (base_price > 0),
                        status TEXT NOT NULL DEFAULT 'available'
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Reservations (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_id INTEGER NOT NULL,
                        check_in TEXT NOT NULL,
                        check_out TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'confirmed',
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (check_out > check_in),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS PriceHistory (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_id INTEGER NOT NULL,
                        date TEXT NOT NULL,
                        base_price REAL NOT NULL,
                        dynamic_price REAL NOT NULL,
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS OverbookingOutcomes (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_type TEXT NOT NULL,
                        period_profile TEXT NOT NULL,
                        stay_date TEXT NOT NULL,
                        booked INTEGER NOT NULL CHECK (booked >= 0),
                        no_shows INTEGER NOT NULL CHECK (no_shows >= 0),
                        oversold INTEGER NOT NULL DEFAULT 0,
                        walked INTEGER NOT NULL DEFAULT 0
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_reservations_room_dates
                    ON Reservations(room_id, check_in, check_out);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_price_history_room_date
                    ON PriceHistory(room_id, date);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_outcomes_type_profile
                    ON OverbookingOutcomes(room_type, period_profile);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_synthetic_data(self) -> None:
        """Seed deterministic synthetic rooms and history only when tables are empty."""
        rng = random.Random(self._settings.synthetic_random_seed)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Synthetic data already present; skipping seed")
                    return

                cursor.executemany(
                    """
                    INSERT INTO Rooms (number, room_type, capacity, base_price)
                    VALUES (?, ?, ?, ?);
                    """,
                    _SEED_ROOMS,
                )
                cursor.execute("SELECT id, room_type, base_price FROM Rooms ORDER BY id ASC;")
                rooms = [
                    (int(row["id"]), str(row["room_type"]), float(row["base_price"]))
                    for row in cursor.fetchall()
                ]

                today = datetime.now(timezone.utc).date()
                start_date = today - timedelta(days=self._settings.synthetic_seed_days)
                end_date = today + timedelta(days=self._settings.synthetic_future_days)

                reservations = []
                for room_id, _, _ in rooms:
                    current = start_date
                    while current < end_date:
                        probability = (
                            self._settings.synthetic_weekend_booking_probability
                            if current.weekday() in (4, 5)
                            else self._settings.synthetic_weekday_booking_probability
                        )
                        if rng.random() >= probability:
                            current += timedelta(days=1)
                            continue
                        check_out = current + timedelta(days=rng.randint(1, 4))
                        if check_out <= today:
                            status = "cancelled" if rng.random() < 0.05 else "checked_out"
                        elif current <= today:
                            status = "checked_in"
                        else:
                            status = "confirmed"
                        reservations.append(
                            (room_id, current.isoformat(), check_out.isoformat(), status)
                        )
                        current = check_out
                cursor.executemany(
                    """
                    INSERT INTO Reservations (room_id, check_in, check_out, status)
                    VALUES (?, ?, ?, ?);
                    """,
                    reservations,
                )

                price_points = []
                for day in range(self._settings.synthetic_seed_days):
                    night = start_date + timedelta(days=day)
                    for room_id, _, base_price in rooms:
                        jitter = rng.uniform(0.9, 1.1)
                        dynamic = round(base_price * seasonality_factor(night) * jitter)
                        price_points.append((room_id, night.isoformat(), base_price, dynamic))
                cursor.executemany(
                    """
                    INSERT INTO PriceHistory (room_id, date, base_price, dynamic_price)
                    VALUES (?, ?, ?, ?);
                    """,
                    price_points,
                )

                rooms_by_type: dict[str, int] = {}
                for _, room_type, _ in rooms:
                    rooms_by_type[room_type] = rooms_by_type.get(room_type, 0) + 1
                outcomes = []
                for day in range(self._settings.synthetic_seed_days):
                    night = start_date + timedelta(days=day)
                    profile = period_profile(
                        DateRange(check_in=night, check_out=night + timedelta(days=1))
                    )
                    for room_type, booked in sorted(rooms_by_type.items()):
                        no_show_probability = _SEED_NO_SHOW_PROBABILITY.get(room_type, 0.05)
                        no_shows = sum(
                            1 for _ in range(booked) if rng.random() < no_show_probability
                        )
                        oversold = 1 if rng.random() < 0.15 else 0
                        walked = 1 if oversold > no_shows else 0
                        outcomes.append(
                            (room_type, profile, night.isoformat(), booked, no_shows, oversold, walked)
                        )
                cursor.executemany(
                    """
                    INSERT INTO OverbookingOutcomes
                        (room_type, period_profile, stay_date, booked, no_shows, oversold, walked)
                    VALUES (?, ?, ?, ?, ?, ?, ?);
                    """,
                    outcomes,
                )
                conn.commit()
            logger.info(
                "Synthetic seed completed | rooms=%s | reservations=%s | price_points=%s | outcomes=%s",
                len(rooms),
                len(reservations),
                len(price_points),
                len(outcomes),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Synthetic data seeding failed: {exc}") from exc

    def create_room(
        self,
        number: str,
        room_type: str,
        capacity: int,
        base_price: float,
        status: str = "available",
    ) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Rooms (number, room_type, capacity, base_price, status)
                VALUES (?, ?, ?, ?, ?);
                """,
                (number, room_type, capacity, base_price, status),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_reservation(
        self,
        room_id: int,
        check_in: date,
        check_out: date,
        status: str = "confirmed",
    ) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Reservations (room_id, check_in, check_out, status)
                VALUES (?, ?, ?, ?);
                """,
                (room_id, check_in.isoformat(), check_out.isoformat(), status),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def record_overbooking_outcome(
        self,
        room_type: str,
        stay_date: date,
        booked: int,
        no_shows: int,
        oversold: int = 0,
        walked: int = 0,
    ) -> None:
        profile = period_profile(DateRange(check_in=stay_date, check_out=stay_date + timedelta(days=1)))
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO OverbookingOutcomes
                    (room_type, period_profile, stay_date, booked, no_shows, oversold, walked)
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (room_type, profile, stay_date.isoformat(), booked, no_shows, oversold, walked),
            )
            conn.commit()

    def _row_to_room(self, row: sqlite3.Row) -> RoomRecord:
        return RoomRecord(
            room_id=int(row["id"]),
            number=str(row["number"]),
            room_type=str(row["room_type"]),
            capacity=int(row["capacity"]),
            base_price=float(row["base_price"]),
            status=str(row["status"]),
        )

    def _row_to_reservation(self, row: sqlite3.Row) -> ReservationRecord:
        return ReservationRecord(
            reservation_id=int(row["id"]),
            room_id=int(row["room_id"]),
            check_in=_parse_date(row["check_in"]),
            check_out=_parse_date(row["check_out"]),
            status=str(row["status"]),
        )

    def get_room(self, room_id: int) -> Optional[RoomRecord]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM Rooms WHERE id = ?;", (room_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return self._row_to_room(row)

    def list_rooms(self, room_ids: Optional[Sequence[int]] = None) -> List[RoomRecord]:
        query = "SELECT * FROM Rooms"
        params: list[object] = []
        if room_ids:
            query += f" WHERE id IN ({_placeholders(room_ids)})"
            params.extend(int(room_id) for room_id in room_ids)
        query += " ORDER BY id ASC;"
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_room(row) for row in cursor.fetchall()]

    def get_reservations_in_range(
        self,
        date_range: DateRange,
        room_ids: Optional[Sequence[int]] = None,
        statuses: Iterable[str] = OCCUPYING_STATUSES,
    ) -> List[ReservationRecord]:
        """Return reservations whose stay intersects the half-open range."""
        status_list = sorted(statuses)
        query = f"""
            SELECT id, room_id, check_in, check_out, status
            FROM Reservations
            WHERE check_in < ?
              AND check_out > ?
              AND status IN ({_placeholders(status_list)})
        """
        params: list[object] = [
            date_range.check_out.isoformat(),
            date_range.check_in.isoformat(),
            *status_list,
        ]
        if room_ids:
            query += f" AND room_id IN ({_placeholders(room_ids)})"
            params.extend(int(room_id) for room_id in room_ids)
        query += " ORDER BY check_in ASC, room_id ASC, id ASC;"
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_reservation(row) for row in cursor.fetchall()]

    def get_reservation_conflicts(
        self,
        date_range: DateRange,
        room_id: Optional[int] = None,
        room_type: Optional[str] = None,
        exclude_reservation_id: Optional[int] = None,
    ) -> List[Conflict]:
        status_list = sorted(BLOCKING_STATUSES)
        query = f"""
            SELECT r.id, r.room_id, r.check_in, r.check_out, r.status
            FROM Reservations AS r
            INNER JOIN Rooms AS rm ON rm.id = r.room_id
            WHERE r.check_in < ?
              AND r.check_out > ?
              AND r.status IN ({_placeholders(status_list)})
        """
        params: list[object] = [
            date_range.check_out.isoformat(),
            date_range.check_in.isoformat(),
            *status_list,
        ]
        if room_id is not None:
            query += " AND r.room_id = ?"
            params.append(room_id)
        if room_type is not None:
            query += " AND LOWER(rm.room_type) = LOWER(?)"
            params.append(room_type)
        if exclude_reservation_id is not None:
            query += " AND r.id != ?"
            params.append(exclude_reservation_id)
        query += " ORDER BY r.check_in ASC, r.room_id ASC, r.id ASC;"
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [
                Conflict(
                    reservation_id=int(row["id"]),
                    room_id=int(row["room_id"]),
                    check_in=_parse_date(row["check_in"]),
                    check_out=_parse_date(row["check_out"]),
                    status=str(row["status"]),
                )
                for row in cursor.fetchall()
            ]

    def get_available_rooms_matching(
        self,
        date_range: DateRange,
        room_type: Optional[str] = None,
        capacity: Optional[int] = None,
    ) -> List[RoomRecord]:
        status_list = sorted(BLOCKING_STATUSES)
        query = f"""
            SELECT rm.*
            FROM Rooms AS rm
            WHERE rm.status NOT IN ({_placeholders(UNBOOKABLE_ROOM_STATUSES)})
              AND NOT EXISTS (
                  SELECT 1 FROM Reservations AS r
                  WHERE r.room_id = rm.id
                    AND r.check_in < ?
                    AND r.check_out > ?
                    AND r.status IN ({_placeholders(status_list)})
              )
        """
        params: list[object] = [
            *UNBOOKABLE_ROOM_STATUSES,
            date_range.check_out.isoformat(),
            date_range.check_in.isoformat(),
            *status_list,
        ]
        if room_type is not None:
            query += " AND LOWER(rm.room_type) = LOWER(?)"
            params.append(room_type)
        if capacity is not None:
            query += " AND rm.capacity >= ?"
            params.append(capacity)
        query += " ORDER BY rm.room_type ASC, rm.number ASC;"
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_room(row) for row in cursor.fetchall()]

    def _occupancy_for(self, date_range: DateRange, room_ids: Sequence[int]) -> Optional[float]:
        if not room_ids:
            return None
        booked = sum(
            _nights_within(reservation.stay, date_range)
            for reservation in self.get_reservations_in_range(date_range, room_ids)
        )
        total = len(room_ids) * date_range.nights
        if total <= 0:
            return None
        return min(1.0, booked / total)

    def get_occupancy_rate(self, date_range: DateRange) -> float:
        """Share of room-nights in the range that are already booked."""
        room_ids = [room.room_id for room in self.list_rooms()]
        rate = self._occupancy_for(date_range, room_ids)
        return 0.0 if rate is None else float(rate)

    def get_room_demand(self, room_id: int, date_range: DateRange) -> float:
        """Room-type occupancy relative to the whole property, as a bounded multiplier."""
        room = self.get_room(room_id)
        if room is None:
            raise LookupError(f"room_id {room_id} not found")

        window = DateRange(
            check_in=date_range.check_in - timedelta(days=ROOM_DEMAND_LOOKBACK_DAYS),
            check_out=date_range.check_out,
        )
        rooms = self.list_rooms()
        all_ids = [item.room_id for item in rooms]
        type_ids = [item.room_id for item in rooms if item.room_type == room.room_type]
        overall = self._occupancy_for(window, all_ids)
        by_type = self._occupancy_for(window, type_ids)
        if not overall or by_type is None:
            return 1.0
        return max(ROOM_DEMAND_FLOOR, min(ROOM_DEMAND_CEILING, by_type / overall))

    def get_price_history(self, room_id: int, days: int) -> List[PricePoint]:
        today = datetime.now(timezone.utc).date()
        since = today - timedelta(days=days)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT date, base_price, dynamic_price
                FROM PriceHistory
                WHERE room_id = ? AND date >= ? AND date < ?
                ORDER BY date ASC;
                """,
                (room_id, since.isoformat(), today.isoformat()),
            )
            return [
                PricePoint(
                    date=_parse_date(row["date"]),
                    base_price=float(row["base_price"]),
                    dynamic_price=float(row["dynamic_price"]),
                )
                for row in cursor.fetchall()
            ]

    def get_overbooking_outcomes(self, room_type: str, profile: str) -> HistoricalBasis:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    COUNT(*) AS sample_size,
                    COALESCE(SUM(booked), 0) AS booked,
                    COALESCE(SUM(no_shows), 0) AS no_shows,
                    COALESCE(SUM(CASE WHEN oversold > 0 AND walked = 0 THEN 1 ELSE 0 END), 0)
                        AS safe_events
                FROM OverbookingOutcomes
                WHERE LOWER(room_type) = LOWER(?) AND period_profile = ?;
                """,
                (room_type, profile),
            )
            row = cursor.fetchone()
        sample_size = int(row["sample_size"])
        booked = int(row["booked"])
        no_show_rate = float(row["no_shows"]) / booked if booked else 0.0
        full_confidence = max(1, self._settings.overbooking_full_confidence_samples)
        return HistoricalBasis(
            sample_size=sample_size,
            no_show_rate=round(no_show_rate, 4),
            confidence=round(min(1.0, sample_size / full_confidence), 4),
            safe_oversell_events=int(row["safe_events"]),
        )

    def get_nightly_occupancy_history(self, since: date, until: date) -> List[NightlyOccupancy]:
        """Expand reservations into one row per room-night for model training."""
        window = DateRange(check_in=since, check_out=until)
        if not window.is_valid():
            return []
        rooms = self.list_rooms()
        occupied: set[tuple[int, date]] = set()
        for reservation in self.get_reservations_in_range(window):
            for night in reservation.stay.iter_nights():
                if since <= night < until:
                    occupied.add((reservation.room_id, night))
        return [
            NightlyOccupancy(
                room_id=room.room_id,
                room_type=room.room_type,
                night=night,
                occupied=1 if (room.room_id, night) in occupied else 0,
            )
            for night in window.iter_nights()
            for room in rooms
        ]
