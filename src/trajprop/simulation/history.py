"""
===============================================================================
TRAJPROP - Mission History Sink
===============================================================================
Asynchronous consumer of per-step mission snapshots.

The propagation loop produces one ``MissionState`` per committed step and
hands it to a ``HistorySink``.  The sink owns a bounded queue and a single
writer thread:

    engine --put()--> [queue, maxsize] --thread--> records --> CSV / SQLite

``put`` blocks while the queue is full, so no record is ever dropped and
the engine is throttled to the writer's pace.  ``close`` is explicit and
final: the writer drains what remains, writes the requested outputs and
exits.  Records come out in exactly the order they were put.
===============================================================================
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from trajprop.core.constants import HISTORY_QUEUE_SIZE
from trajprop.database.telemetry_db import TelemetryDatabase

logger = logging.getLogger(__name__)

_CLOSE = object()


@dataclass
class MissionState:
    """Snapshot of the vehicle and its orbit at one instant."""
    dt: datetime
    spacecraft: Dict[str, Any] = field(default_factory=dict)
    orbit: Dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> Dict[str, Any]:
        """Flat row: time, ``sc_``-prefixed vehicle fields, orbit fields."""
        record: Dict[str, Any] = {"time": self.dt}
        record.update({f"sc_{k}": v for k, v in self.spacecraft.items()})
        record.update(self.orbit)
        return record


@dataclass
class ExportConfig:
    """
    Where (and whether) to persist a mission history.

    Attributes
    ----------
    filename : str, optional
        Base file name without extension.
    csv : bool
        Write ``<directory>/<filename>.csv``.
    sqlite : bool
        Append to ``<directory>/<filename>.db``.
    directory : str
        Output directory, created on demand.
    """
    filename: Optional[str] = None
    csv: bool = False
    sqlite: bool = False
    directory: str = "."

    def is_useless(self) -> bool:
        """True when no output would be produced."""
        return not self.filename or not (self.csv or self.sqlite)

    def path(self, suffix: str) -> Path:
        return Path(self.directory) / f"{self.filename}{suffix}"


class HistorySink:
    """
    Bounded, ordered, single-writer history consumer.

    Parameters
    ----------
    export : ExportConfig, optional
        Output files written once the sink is closed.  Without one the
        records are only kept in memory (``to_dataframe``).
    maxsize : int
        Queue capacity; ``put`` blocks beyond it.
    propagator : str, optional
        Formulation name stored with the run in the SQLite output.
    """

    def __init__(self, export: Optional[ExportConfig] = None,
                 maxsize: int = HISTORY_QUEUE_SIZE,
                 propagator: Optional[str] = None) -> None:
        self.export = export if export is not None else ExportConfig()
        self.propagator = propagator
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=maxsize)
        self._records: List[Dict[str, Any]] = []
        self._closed = False
        self._lock = threading.Lock()
        self._error: Optional[BaseException] = None
        self._thread = threading.Thread(
            target=self._drain, name="history-sink", daemon=True
        )

    # ------------------------------------------------------------------ #
    #  Producer side
    # ------------------------------------------------------------------ #
    def start(self) -> "HistorySink":
        if not self._thread.is_alive() and self._thread.ident is None:
            self._thread.start()
        return self

    def put(self, record: MissionState) -> None:
        """
        Enqueue a snapshot, blocking while the queue is full.

        Raises
        ------
        RuntimeError
            If the sink has been closed.
        """
        if self._closed:
            raise RuntimeError("history sink is closed")
        self._queue.put(record)

    def close(self) -> None:
        """Signal end of input.  Idempotent; no ``put`` is accepted afterwards."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._queue.put(_CLOSE)

    @property
    def closed(self) -> bool:
        return self._closed

    def join(self, timeout: Optional[float] = None) -> None:
        """
        Wait for the writer to finish.

        Raises
        ------
        RuntimeError
            If the writer thread failed; the writer error is chained.
        """
        if self._thread.ident is not None:
            self._thread.join(timeout)
        if self._error is not None:
            raise RuntimeError(f"history writer failed: {self._error}") from self._error

    # ------------------------------------------------------------------ #
    #  Consumer side
    # ------------------------------------------------------------------ #
    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if item is _CLOSE:
                break
            self._records.append(item.to_record())
        logger.debug("History sink drained %d records", len(self._records))
        try:
            self._write_outputs()
        except (OSError, ValueError) as exc:
            logger.error("Failed to write mission history: %s", exc)
            self._error = exc

    def _write_outputs(self) -> None:
        if self.export.is_useless():
            return
        Path(self.export.directory).mkdir(parents=True, exist_ok=True)
        df = self.to_dataframe()

        if self.export.csv:
            path = self.export.path(".csv")
            df.to_csv(path)
            logger.info("History saved to %s (%d rows)", path, len(df))

        if self.export.sqlite:
            path = self.export.path(".db")
            start = df.index[0] if len(df) else None
            end = df.index[-1] if len(df) else None
            with TelemetryDatabase(path) as db:
                run_id = db.create_run(self.export.filename, start, end, self.propagator)
                n = db.insert_history(run_id, df)
            logger.info("History saved to %s (run %d, %d rows)", path, run_id, n)

    # ------------------------------------------------------------------ #
    #  Results
    # ------------------------------------------------------------------ #
    def __len__(self) -> int:
        return len(self._records)

    def to_dataframe(self) -> pd.DataFrame:
        """Records received so far, indexed by time."""
        if not self._records:
            return pd.DataFrame()
        return pd.DataFrame(self._records).set_index("time")

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"HistorySink({state}, records={len(self._records)}, export={self.export})"
