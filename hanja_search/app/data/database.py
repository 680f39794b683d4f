"""SQLite persistence for the hanja dictionary."""

from __future__ import annotations

import os
import queue
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterable, List, Optional, Protocol, Sequence

from hanja_search.core.errors import UpstreamUnavailable
from hanja_search.core.models import CharacterRecord, Element
from hanja_search.utils.observability import get_logger

from .demo_data import iter_demo_records


class HanjaRepository(Protocol):
    """Read interface the search engine needs from persistence."""

    def fetch_by_readings(self, readings: Sequence[str]) -> List[CharacterRecord]:
        ...

    def fetch_by_character(self, character: str) -> Optional[CharacterRecord]:
        ...

    def fetch_by_ids(self, ids: Iterable[str]) -> List[CharacterRecord]:
        ...


def _ensure_parent_directory(path: str) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)


_DICT_COLUMNS = (
    "id, character, meaning, strokes, korean_reading, element, "
    "usage_frequency, name_frequency, surname_priority"
)


class SQLiteHanjaRepository:
    """Repository encapsulating all SQLite access for hanja lookups.

    Every read returns records ordered by ``id``, which the search engine
    relies on for deterministic tie-breaking and cursor pagination.
    """

    def __init__(
        self,
        db_path: str,
        *,
        pool_size: int = 4,
        pool_timeout: float = 5.0,
    ) -> None:
        self.db_path = db_path
        self._pool_size = max(1, int(pool_size))
        self._pool_timeout = max(0.0, float(pool_timeout))
        self._pool: queue.Queue = queue.Queue(maxsize=self._pool_size)
        self._pool_semaphore = threading.BoundedSemaphore(self._pool_size)
        self._logger = get_logger(__name__).bind(
            component="sqlite_repository",
            db_path=db_path,
        )
        self._logger.info(
            "SQLite repository initialised",
            context={"pool_size": self._pool_size, "pool_timeout": self._pool_timeout},
        )

    # Connection pool -------------------------------------------------------
    def _create_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.db_path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        try:
            connection.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as exc:
            self._logger.warning("SQLite WAL mode unavailable", context={"error": str(exc)})
        return connection

    def _acquire_connection(self) -> sqlite3.Connection:
        if self._pool_timeout > 0:
            acquired = self._pool_semaphore.acquire(timeout=self._pool_timeout)
        else:
            acquired = self._pool_semaphore.acquire(blocking=False)
        if not acquired:
            self._logger.error(
                "Database connection pool exhausted",
                context={"pool_size": self._pool_size, "timeout": self._pool_timeout},
            )
            raise UpstreamUnavailable("Database connection pool exhausted")

        try:
            return self._pool.get_nowait()
        except queue.Empty:
            pass
        try:
            return self._create_connection()
        except sqlite3.Error as exc:
            self._pool_semaphore.release()
            raise UpstreamUnavailable(f"Cannot open database: {exc}") from exc

    def _release_connection(self, connection: sqlite3.Connection) -> None:
        try:
            self._pool.put_nowait(connection)
        except queue.Full:
            connection.close()
        finally:
            self._pool_semaphore.release()

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        connection = self._acquire_connection()
        try:
            yield connection
            if connection.in_transaction:
                connection.commit()
        except sqlite3.Error as exc:
            if connection.in_transaction:
                connection.rollback()
            self._logger.error("SQLite operation failed", context={"error": str(exc)})
            raise UpstreamUnavailable(f"Database operation failed: {exc}") from exc
        except Exception:
            if connection.in_transaction:
                connection.rollback()
            raise
        finally:
            self._release_connection(connection)

    def close(self) -> None:
        while True:
            try:
                connection = self._pool.get_nowait()
            except queue.Empty:
                return
            connection.close()

    # Schema ----------------------------------------------------------------
    def ensure_database(self) -> int:
        """Create and seed the demo database when missing; return the row count."""

        if not os.path.exists(self.db_path):
            self._logger.info("Database file missing; creating demo database")
            return self._create_demo_database()

        try:
            with self._connect() as conn:
                self._initialise_schema(conn)
                (count,) = conn.execute("SELECT COUNT(*) FROM hanja_dict").fetchone()
        except UpstreamUnavailable as exc:
            if not isinstance(exc.__cause__, sqlite3.Error):
                raise
            self._logger.warning(
                "Database verification failed; recreating demo",
                context={"error": str(exc)},
            )
            return self._create_demo_database(overwrite=True)

        row_count = int(count)
        self._logger.info("Database schema verified", context={"row_count": row_count})
        return row_count

    def _initialise_schema(self, connection: sqlite3.Connection) -> None:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS hanja_dict (
                id TEXT PRIMARY KEY,
                character TEXT NOT NULL UNIQUE,
                meaning TEXT NOT NULL DEFAULT '',
                strokes INTEGER NOT NULL DEFAULT 0,
                korean_reading TEXT NOT NULL,
                element TEXT,
                usage_frequency INTEGER NOT NULL DEFAULT 0,
                name_frequency INTEGER NOT NULL DEFAULT 0,
                surname_priority INTEGER
            )
            """
        )
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS hanja_reading (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                character TEXT NOT NULL,
                reading TEXT NOT NULL,
                is_primary INTEGER NOT NULL DEFAULT 0,
                UNIQUE (character, reading)
            )
            """
        )
        connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_hanja_reading_reading ON hanja_reading (reading)"
        )

    def _create_demo_database(self, overwrite: bool = False) -> int:
        if overwrite and os.path.exists(self.db_path):
            self.close()
            os.remove(self.db_path)

        _ensure_parent_directory(self.db_path)
        self._logger.info("Seeding demo database", context={"overwrite": overwrite})

        with self._connect() as conn:
            self._initialise_schema(conn)
        row_count = self.upsert_characters(iter_demo_records())
        self._logger.info("Demo database seeded", context={"rows": row_count})
        return row_count

    # Offline load path -----------------------------------------------------
    def upsert_characters(self, records: Iterable[CharacterRecord]) -> int:
        """Insert or replace dictionary rows together with their readings."""

        written = 0
        with self._connect() as conn:
            self._initialise_schema(conn)
            for record in records:
                conn.execute(
                    f"""
                    INSERT INTO hanja_dict ({_DICT_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        character = excluded.character,
                        meaning = excluded.meaning,
                        strokes = excluded.strokes,
                        korean_reading = excluded.korean_reading,
                        element = excluded.element,
                        usage_frequency = excluded.usage_frequency,
                        name_frequency = excluded.name_frequency,
                        surname_priority = excluded.surname_priority
                    """,
                    (
                        record.id,
                        record.character,
                        record.meaning,
                        record.strokes,
                        record.korean_reading,
                        record.element.value if record.element is not None else None,
                        record.usage_frequency,
                        record.name_frequency,
                        record.surname_priority,
                    ),
                )
                conn.execute("DELETE FROM hanja_reading WHERE character = ?", (record.character,))
                conn.executemany(
                    "INSERT INTO hanja_reading (character, reading, is_primary) VALUES (?, ?, ?)",
                    [
                        (record.character, reading, 1 if index == 0 else 0)
                        for index, reading in enumerate(record.readings)
                    ],
                )
                written += 1
        self._logger.info("Characters upserted", context={"rows": written})
        return written

    # Reads -----------------------------------------------------------------
    def _load_records(
        self,
        conn: sqlite3.Connection,
        where: str,
        params: Sequence[Any],
    ) -> List[CharacterRecord]:
        rows = conn.execute(
            f"SELECT {_DICT_COLUMNS} FROM hanja_dict WHERE {where} ORDER BY id",
            tuple(params),
        ).fetchall()
        if not rows:
            return []

        characters = [row["character"] for row in rows]
        placeholders = ",".join("?" for _ in characters)
        alternatives: Dict[str, List[str]] = {}
        for reading_row in conn.execute(
            f"""
            SELECT character, reading
            FROM hanja_reading
            WHERE character IN ({placeholders}) AND is_primary = 0
            ORDER BY id
            """,
            characters,
        ):
            alternatives.setdefault(reading_row["character"], []).append(reading_row["reading"])

        return [
            CharacterRecord(
                id=row["id"],
                character=row["character"],
                meaning=row["meaning"] or "",
                strokes=int(row["strokes"] or 0),
                korean_reading=row["korean_reading"],
                alternative_readings=tuple(alternatives.get(row["character"], ())),
                element=Element(row["element"]) if row["element"] else None,
                usage_frequency=int(row["usage_frequency"] or 0),
                name_frequency=int(row["name_frequency"] or 0),
                surname_priority=row["surname_priority"],
            )
            for row in rows
        ]

    def fetch_by_readings(self, readings: Sequence[str]) -> List[CharacterRecord]:
        """Return every character whose primary or alternative reading is in ``readings``."""

        terms = [reading for reading in dict.fromkeys(readings) if reading]
        if not terms:
            return []
        placeholders = ",".join("?" for _ in terms)
        with self._connect() as conn:
            records = self._load_records(
                conn,
                f"character IN (SELECT character FROM hanja_reading WHERE reading IN ({placeholders}))",
                terms,
            )
        self._logger.debug(
            "Characters fetched by reading",
            context={"readings": terms, "count": len(records)},
        )
        return records

    def fetch_by_character(self, character: str) -> Optional[CharacterRecord]:
        with self._connect() as conn:
            records = self._load_records(conn, "character = ?", (character,))
        return records[0] if records else None

    def fetch_by_ids(self, ids: Iterable[str]) -> List[CharacterRecord]:
        wanted = [str(value) for value in dict.fromkeys(ids)]
        if not wanted:
            return []
        placeholders = ",".join("?" for _ in wanted)
        with self._connect() as conn:
            return self._load_records(conn, f"id IN ({placeholders})", wanted)

    def get_statistics(self) -> Dict[str, Any]:
        with self._connect() as conn:
            (total, average_strokes) = conn.execute(
                "SELECT COUNT(*), AVG(strokes) FROM hanja_dict"
            ).fetchone()
            by_element = {
                row["element"]: int(row["count"])
                for row in conn.execute(
                    """
                    SELECT element, COUNT(*) AS count
                    FROM hanja_dict
                    WHERE element IS NOT NULL
                    GROUP BY element
                    ORDER BY element
                    """
                )
            }
        return {
            "total": int(total),
            "by_element": by_element,
            "average_strokes": float(average_strokes or 0.0),
        }


__all__ = ["HanjaRepository", "SQLiteHanjaRepository"]
