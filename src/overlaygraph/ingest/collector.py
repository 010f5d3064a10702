"""
Report collection from simulation participants.

Each participant (reporter) submits one report fragment per reporting
interval. Fragments are numbered with a per-(protocol, participant)
checkpoint counter, passed through a bounded queue to a single writer
thread, and stored on disk until every participant is done. Merging then
joins the fragments of each checkpoint into the single per-interval report
consumed by the overlay assembler.

Layout under the collector root:
  unprocessed/<protocol>/<checkpoint>/<checkpoint>_<participant>_<protocol>.json
  processed/<protocol>/<checkpoint>_<protocol>.json
"""

import os
import queue
import re
import threading
from dataclasses import dataclass
from typing import Optional, Union

from ..logger import get_logger
from ..reports.snapshot import Report, ReportError
from .report_loader import ReportLoader, checkpoint_name

logger = get_logger(__name__)

UNPROCESSED = "unprocessed"
PROCESSED = "processed"

_STOP = object()
_UNSAFE = re.compile(r"[^\w.\-]")


class CheckpointCounter:
    """Monotonic checkpoint numbers per (protocol, participant), thread-safe."""

    def __init__(self):
        self._counters: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def next(self, protocol: str, participant: str) -> int:
        key = (protocol, participant)
        with self._lock:
            value = self._counters.get(key, -1) + 1
            self._counters[key] = value
        return value

    def current(self, protocol: str, participant: str) -> Optional[int]:
        with self._lock:
            return self._counters.get((protocol, participant))

    def release(self, protocol: str, participant: str, checkpoint: int) -> None:
        """Give back the latest number when its fragment was never queued."""
        key = (protocol, participant)
        with self._lock:
            if self._counters.get(key) != checkpoint:
                return
            if checkpoint == 0:
                del self._counters[key]
            else:
                self._counters[key] = checkpoint - 1


@dataclass(frozen=True)
class Fragment:
    """One participant's report for one checkpoint."""
    participant: str
    checkpoint: int
    report: Report


def fragment_path(root: str, fragment: Fragment) -> str:
    protocol = fragment.report.protocol_name
    ckpt = checkpoint_name(fragment.checkpoint)
    participant = _UNSAFE.sub("_", fragment.participant)
    return os.path.join(
        root, UNPROCESSED, protocol, ckpt, f"{ckpt}_{participant}_{protocol}.json"
    )


class ReportCollector:
    """
    Bounded producer/consumer pipeline writing report fragments to disk.

    Producers call submit() (one per participant, from any thread); a single
    consumer thread started with start() writes the fragments. stop() drains
    the queue and re-raises the first write failure, if any.
    """

    def __init__(self, root: str, counter: CheckpointCounter, maxsize: int = 64):
        self.root = root
        self.counter = counter
        self.queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.saved: list[str] = []
        self.errors: list[Exception] = []
        self._worker: Optional[threading.Thread] = None
        self._submit_lock = threading.Lock()

    def submit(
        self,
        participant: str,
        report: Union[Report, dict],
        timeout: Optional[float] = None,
    ) -> int:
        """
        Number and enqueue a fragment; blocks while the queue is full.

        Raises queue.Full when no slot frees up within timeout. The checkpoint
        number is then released so the participant's sequence stays gapless.
        """
        if isinstance(report, dict):
            report = Report.from_dict(report)
        with self._submit_lock:
            checkpoint = self.counter.next(report.protocol_name, participant)
            try:
                self.queue.put(Fragment(participant, checkpoint, report), timeout=timeout)
            except queue.Full:
                self.counter.release(report.protocol_name, participant, checkpoint)
                logger.warning(
                    "Queue full, dropped checkpoint %s from %s", checkpoint_name(checkpoint), participant,
                )
                raise
        logger.debug(
            "Queued checkpoint %s from %s (%s)",
            checkpoint_name(checkpoint), participant, report.protocol_name,
        )
        return checkpoint

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def flush(self) -> None:
        """Wait until every queued fragment has been written."""
        if self.is_running:
            self.queue.join()

    def start(self) -> "ReportCollector":
        if self._worker is not None:
            raise RuntimeError("Collector already started")
        self._worker = threading.Thread(target=self.run, name="report-collector", daemon=True)
        self._worker.start()
        return self

    def run(self) -> None:
        """Consumer loop: write fragments until the stop sentinel arrives."""
        while True:
            item = self.queue.get()
            try:
                if item is _STOP:
                    return
                self.saved.append(self.save_fragment(item))
            except (OSError, ValueError) as e:
                logger.error("Could not save fragment: %s", e)
                self.errors.append(e)
            finally:
                self.queue.task_done()

    def stop(self, timeout: Optional[float] = None) -> list[str]:
        """Flush pending fragments and stop the consumer thread."""
        if self._worker is None:
            raise RuntimeError("Collector not started")
        self.queue.put(_STOP)
        self._worker.join(timeout)
        self._worker = None
        if self.errors:
            raise ReportError(f"{len(self.errors)} fragment(s) could not be saved") from self.errors[0]
        logger.info("Collected %d report fragments", len(self.saved))
        return list(self.saved)

    def save_fragment(self, fragment: Fragment) -> str:
        path = fragment_path(self.root, fragment)
        ReportLoader.save(path, fragment.report)
        return path

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        if self._worker is not None:
            self.stop()


def merge_reports(reports: list[Report], interval_index: int) -> Report:
    """Join fragments of the same interval into one report."""
    if not reports:
        raise ReportError(f"No fragments for checkpoint {checkpoint_name(interval_index)}")

    first = reports[0]
    nodes, edges, publications = {}, {}, {}
    for report in reports:
        if report.protocol_name != first.protocol_name:
            raise ReportError(
                f"Cannot merge {report.protocol_name} into {first.protocol_name} "
                f"at checkpoint {checkpoint_name(interval_index)}"
            )
        nodes.update(report.nodes)
        edges.update(report.edges)
        publications.update(report.publications)

    return Report(
        protocol_id=first.protocol_id,
        protocol_name=first.protocol_name,
        interval_index=interval_index,
        nodes=nodes,
        edges=edges,
        publications=publications,
    )


def merge_fragments(root: str, protocol: str) -> list[str]:
    """Merge every checkpoint of a protocol into processed/ and return the paths."""
    source = os.path.join(root, UNPROCESSED, protocol)
    if not os.path.isdir(source):
        raise ReportError(f"No fragments collected for {protocol} under {root}")

    target = os.path.join(root, PROCESSED, protocol)
    written = []
    for ckpt in sorted(os.listdir(source)):
        ckpt_dir = os.path.join(source, ckpt)
        if not ckpt.isdigit() or not os.path.isdir(ckpt_dir):
            continue

        fragments = [
            ReportLoader.load(os.path.join(ckpt_dir, name))
            for name in sorted(os.listdir(ckpt_dir))
            if name.endswith(".json")
        ]
        merged = merge_reports(fragments, int(ckpt))
        path = os.path.join(target, f"{ckpt}_{protocol}.json")
        ReportLoader.save(path, merged)
        logger.debug("Merged %d fragments into %s", len(fragments), path)
        written.append(path)

    logger.info("Merged %d checkpoints for %s", len(written), protocol)
    return written
