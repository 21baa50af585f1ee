"""
===============================================================================
TRAJPROP - Mission History Database
===============================================================================
SQLite-backed storage for propagation histories.  One row per committed
integration step (spacecraft + orbit snapshot), grouped by run.

Uses sqlite3 for the connection and pandas for bulk insertion and queries.
The schema is small and lives in this module.

Usage:
    from trajprop.database.telemetry_db import TelemetryDatabase

    db = TelemetryDatabase("output/spiral.db")
    run_id = db.create_run("spiral", start, end, "CARTESIAN")
    db.insert_history(run_id, history_df)
    df = db.query_history(run_id)
    db.close()
===============================================================================
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import pandas as pd


SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    start_time  TEXT,
    end_time    TEXT,
    propagator  TEXT
);

CREATE TABLE IF NOT EXISTS history (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id      INTEGER NOT NULL REFERENCES runs(id) ON DELETE CASCADE,
    time        TEXT NOT NULL,
    sc_name     TEXT,
    sc_fuel_mass REAL,
    sc_mass     REAL,
    sc_cargo    INTEGER,
    sc_waypoint TEXT,
    origin      TEXT,
    x REAL, y REAL, z REAL,
    vx REAL, vy REAL, vz REAL,
    a REAL, e REAL, i REAL,
    raan REAL, argp REAL, nu REAL
);

CREATE INDEX IF NOT EXISTS idx_history_run_time ON history(run_id, time);
"""


class TelemetryDatabase:
    """
    SQLite database of propagation histories.

    Parameters
    ----------
    db_path : str or Path
        Path to the database file.  Created (with its parent directory) if
        it does not exist.
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA foreign_keys = ON")
        self.create_tables()

    # =========================================================================
    # Schema Management
    # =========================================================================

    def create_tables(self) -> None:
        """Create the tables and indexes if they are missing."""
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    # =========================================================================
    # Insert Operations
    # =========================================================================

    def create_run(
        self,
        name: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        propagator: Optional[str] = None,
    ) -> int:
        """
        Register a propagation run.

        Returns
        -------
        int
            The run ID used to tag history rows.
        """
        cursor = self._conn.execute(
            "INSERT INTO runs (name, created_at, start_time, end_time, propagator) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                name,
                datetime.now(timezone.utc).isoformat(),
                start.isoformat() if start is not None else None,
                end.isoformat() if end is not None else None,
                propagator,
            ),
        )
        self._conn.commit()
        return cursor.lastrowid

    def insert_history(self, run_id: int, df: pd.DataFrame) -> int:
        """
        Bulk insert a history DataFrame as produced by ``HistorySink``.

        Parameters
        ----------
        run_id : int
            Run the rows belong to.
        df : pd.DataFrame
            History indexed by time; columns matching the ``history`` table.

        Returns
        -------
        int
            Number of rows inserted.
        """
        if df.empty:
            return 0
        rows = df.reset_index()
        rows["time"] = rows["time"].astype(str)
        rows.insert(0, "run_id", run_id)

        known = {col[1] for col in self._conn.execute("PRAGMA table_info(history)")}
        rows = rows[[c for c in rows.columns if c in known]]
        rows.to_sql("history", self._conn, if_exists="append", index=False)
        self._conn.commit()
        return len(rows)

    # =========================================================================
    # Query Operations
    # =========================================================================

    def list_runs(self) -> pd.DataFrame:
        """All registered runs, newest last."""
        return pd.read_sql_query("SELECT * FROM runs ORDER BY id", self._conn)

    def query_history(self, run_id: int, origin: Optional[str] = None) -> pd.DataFrame:
        """
        History rows of a run, ordered by time.

        Parameters
        ----------
        run_id : int
            Run to read.
        origin : str, optional
            Only keep rows centred on this body.
        """
        sql = "SELECT * FROM history WHERE run_id = ?"
        params = [run_id]
        if origin is not None:
            sql += " AND origin = ?"
            params.append(origin)
        sql += " ORDER BY id"
        return pd.read_sql_query(sql, self._conn, params=params)

    def count_rows(self, run_id: Optional[int] = None) -> int:
        if run_id is None:
            row = self._conn.execute("SELECT COUNT(*) FROM history").fetchone()
        else:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM history WHERE run_id = ?", (run_id,)
            ).fetchone()
        return int(row[0])

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "TelemetryDatabase":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"TelemetryDatabase({str(self.db_path)!r})"
