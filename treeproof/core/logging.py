"""Logging setup and FlightLogger circular-buffer handler for forensics."""

import logging
import sys
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

from treeproof.core.config import get_config

FLIGHT_LOG_CAPACITY = 10_000
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


_flight_logger: "FlightLogger | None" = None


class FlightLogger(logging.Handler):
    """
    Circular buffer handler: keeps the last N log records (all levels) in memory.
    dump(label, fingerprint=None) writes the buffer to {forensics_dir}/{label}_{timestamp}.log.
    """

    def __init__(
        self,
        capacity: int = FLIGHT_LOG_CAPACITY,
        forensics_dir: str | Path = "logs/forensics",
    ) -> None:
        super().__init__(level=logging.DEBUG)
        self._buffer: deque[logging.LogRecord] = deque(maxlen=capacity)
        self._forensics_dir = Path(forensics_dir)

    def emit(self, record: logging.LogRecord) -> None:
        self._buffer.append(record)

    def dump(self, label: str, fingerprint: str | None = None) -> str:
        """Write buffer to forensics dir; return path to the written file."""
        self._forensics_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        if fingerprint is not None:
            name = f"{label}_{fingerprint[:12]}_{timestamp}.log"
        else:
            name = f"{label}_{timestamp}.log"
        filepath = self._forensics_dir / name
        formatter = self.formatter or logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
        with open(filepath, "w") as f:
            for record in self._buffer:
                f.write(formatter.format(record) + "\n")
        return str(filepath)

    def __len__(self) -> int:
        return len(self._buffer)


def get_flight_logger() -> FlightLogger | None:
    """Return the global FlightLogger handler created by setup_logging(), if any."""
    return _flight_logger


def setup_logging() -> None:
    """
    Configure application logging.

    Invariants:
    - The root logger is set to DEBUG so that all records reach handlers.
    - Console handler (stderr) logs at the configured log_level.
    - A FlightLogger handler captures all levels into an in-memory circular buffer.
    """
    global _flight_logger
    cfg = get_config()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # Remove existing handlers so we don't duplicate when called again
    for h in root.handlers[:]:
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(getattr(logging, cfg.log_level.upper(), logging.INFO))
    console.setFormatter(formatter)
    root.addHandler(console)

    flight = FlightLogger(capacity=FLIGHT_LOG_CAPACITY, forensics_dir=cfg.forensics_dir)
    flight.setFormatter(formatter)
    root.addHandler(flight)
    _flight_logger = flight

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
