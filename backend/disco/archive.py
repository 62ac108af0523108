import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from .errors import ArchiveError

logger = logging.getLogger(__name__)

WINDOW_FORMAT = "%Y-%m-%dT%H:%M:%S"


@dataclass
class Sample:
    timestamp: int
    value: int

    def to_dict(self) -> Dict[str, int]:
        return {"timestamp": self.timestamp, "value": self.value}


@dataclass
class Series:
    """One metric's interval series as written to the archive."""

    experiment: str
    hostname: str
    metric: str
    samples: List[Sample] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experiment": self.experiment,
            "hostname": self.hostname,
            "metric": self.metric,
            "sample": [s.to_dict() for s in self.samples],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Series":
        return cls(
            experiment=data["experiment"],
            hostname=data["hostname"],
            metric=data["metric"],
            samples=[Sample(int(s["timestamp"]), int(s["value"])) for s in data.get("sample") or []],
        )


class ArchiveWriter:
    # Writes interval series to <base>/<Y>/<m>/<d>/<hostname>/<start>-to-<end>-switch.json

    def __init__(self, base_dir: str = ".", hostname: str = ""):
        self.base_dir = base_dir
        self.hostname = hostname

    def path_for(self, interval: int, now: Optional[datetime] = None) -> str:
        now = now or datetime.now()
        start = now - timedelta(seconds=interval)
        dirs = os.path.join(self.base_dir, now.strftime("%Y/%m/%d"), self.hostname)
        file_name = f"{start.strftime(WINDOW_FORMAT)}-to-{now.strftime(WINDOW_FORMAT)}-switch.json"
        return os.path.join(dirs, file_name)

    def write(self, records: Iterable[Series], interval: int, now: Optional[datetime] = None) -> str:
        """
        Append every record to the archive file for the window ending now.

        Records are written back to back with no enclosing array. The payload
        is serialized before the file is opened, so a serialization failure
        leaves the file untouched.
        """
        path = self.path_for(interval, now)

        try:
            payload = "".join(json.dumps(r.to_dict(), indent=4) for r in records)
        except (TypeError, ValueError) as e:
            raise ArchiveError(f"Failed to serialize archive records: {e}") from e

        try:
            os.makedirs(os.path.dirname(path), mode=0o755, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(payload)
        except OSError as e:
            raise ArchiveError(f"Failed to write archive file ({path}): {e}") from e

        logger.debug(f"Wrote {len(payload)} bytes to {path}")
        return path


def read_records(path: str) -> List[Series]:
    """Parse an archive file of back-to-back JSON documents."""
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    decoder = json.JSONDecoder()
    records = []
    pos = 0
    while True:
        # Skip whitespace between documents
        while pos < len(text) and text[pos].isspace():
            pos += 1
        if pos >= len(text):
            break
        data, pos = decoder.raw_decode(text, pos)
        records.append(Series.from_dict(data))
    return records
