"""
Ordered report loading.

Reads the per-interval JSON reports written by the collector. Files are
named with an 8-digit zero-padded checkpoint number prefix and are returned
in checkpoint order. A missing checkpoint or an unreadable file aborts the
load: a temporal graph cannot be rendered across a gap.
"""

import json
import os
import re
from typing import Iterator

from ..logger import get_logger
from ..reports.snapshot import Report, ReportError

logger = get_logger(__name__)

_CHECKPOINT = re.compile(r"^(\d{8})")


def checkpoint_name(checkpoint: int) -> str:
    return f"{checkpoint:08d}"


def parse_checkpoint(filename: str) -> int:
    m = _CHECKPOINT.match(os.path.basename(filename))
    if not m:
        raise ReportError(f"Report file {filename} has no checkpoint number")
    return int(m.group(1))


class ReportLoader:
    """
    Load the reports of one protocol from a directory.

    Supports:
      - Lazy iteration in checkpoint order
      - Gap detection between consecutive checkpoints
      - Loading a single report file
    """

    def __init__(self, directory: str, allow_gaps: bool = False):
        self.directory = directory
        self.allow_gaps = allow_gaps

    def files(self) -> list[str]:
        """Report file paths ordered by checkpoint number."""
        if not os.path.isdir(self.directory):
            raise ReportError(f"Could not find report directory {self.directory}")

        entries = []
        for name in os.listdir(self.directory):
            if not name.endswith(".json") or not _CHECKPOINT.match(name):
                continue
            entries.append((parse_checkpoint(name), os.path.join(self.directory, name)))
        entries.sort()

        if not self.allow_gaps:
            for (prev, _), (cur, path) in zip(entries, entries[1:]):
                if cur == prev:
                    raise ReportError(f"Duplicate checkpoint {checkpoint_name(cur)} in {self.directory}")
                if cur != prev + 1:
                    raise ReportError(
                        f"Missing report for checkpoint {checkpoint_name(prev + 1)} before {path}"
                    )

        logger.debug("Found %d reports in %s", len(entries), self.directory)
        return [path for _, path in entries]

    def __iter__(self) -> Iterator[Report]:
        for path in self.files():
            yield self.load(path)

    @staticmethod
    def load(path: str) -> Report:
        """Parse one report file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ReportError(f"Missing report {path}") from e
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ReportError(f"Could not read report {path}: {e}") from e

        try:
            return Report.from_dict(data)
        except ReportError as e:
            raise ReportError(f"{path}: {e}") from e

    @staticmethod
    def save(path: str, report: Report) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w") as f:
            json.dump(report.to_dict(), f, indent=2)


def load_reports(directory: str) -> list[Report]:
    """Load every report of a directory, in order."""
    return list(ReportLoader(directory))
