"""
Dissemination animation.

Replays the path of a single traced publication on its own timeline. An edge
that carried the message with hop count h during reporting interval r is
scheduled for animation step r + h, so playback follows causal hop order
instead of the order in which reports happened to arrive. Anything that
appears on this timeline stays alive until the end of the animation.
"""

from collections import defaultdict
from typing import Optional

from ..graph.attributes import EdgeAttributeWriter
from ..graph.lifecycle import LifecycleState, LifecycleTracker
from ..graph.temporal import TemporalEdge, TemporalGraph, TemporalNode
from ..logger import get_logger
from ..reports.snapshot import EdgeSnapshot, Report

logger = get_logger(__name__)


class DisseminationAnimator:
    """
    Schedule and materialize the dissemination edges of one message.

    Key of the schedule: reporting interval + hop count.
    Value: the edge snapshots that carried the message at that step.
    """

    def __init__(
        self,
        message_id: str,
        graph: TemporalGraph,
        nodes: LifecycleTracker,
        edges: LifecycleTracker,
        edge_writer: Optional[EdgeAttributeWriter] = None,
    ):
        self.message_id = message_id
        self.graph = graph
        self.nodes = nodes
        self.edges = edges
        self.edge_writer = edge_writer or EdgeAttributeWriter()
        self.animation_length = 0
        self._schedule: dict[int, list[EdgeSnapshot]] = defaultdict(list)

    @property
    def pending_steps(self) -> list[int]:
        return sorted(step for step, edges in self._schedule.items() if edges)

    def schedule(self, report: Report, interval: int) -> int:
        """Queue every edge of the report that carried the traced message."""
        scheduled = 0
        for edge in report.edges.values():
            pub = edge.publications.get(self.message_id)
            if pub is None:
                continue
            step = interval + pub.hop_count
            self.animation_length = max(self.animation_length, step)
            self._schedule[step].append(edge)
            scheduled += 1
        return scheduled

    def materialize(self, step: int, report: Report) -> list[TemporalEdge]:
        """Create the edges scheduled at step that are not alive yet."""
        created = []
        for snapshot in self._schedule.pop(step, []):
            if self.edges.state(snapshot.id) is LifecycleState.ALIVE:
                continue

            source = self._ensure_node(snapshot.source_id, step, report)
            target = self._ensure_node(snapshot.target_id, step, report)

            edge = self.edges.pin(
                snapshot.id,
                step,
                factory=lambda eid: self.graph.create_edge(eid, source, target),
            )
            self.edge_writer.update(edge, snapshot, step, step + 1)
            created.append(edge)

        if created:
            logger.debug("Step %s: %d dissemination edges", step, len(created))
        return created

    def drain(self, from_step: int, report: Report) -> int:
        """
        Materialize the remaining steps.

        Hop counts can push steps past the last reporting interval, so the
        schedule runs on until the longest step seen. Returns the step after
        the last one processed.
        """
        step = from_step
        while step <= self.animation_length:
            self.materialize(step, report)
            step += 1
        return step

    def final_boundary(self, interval_count: int) -> int:
        """Time at which every pinned spell ends."""
        return max(interval_count, self.animation_length + 1)

    def _ensure_node(self, node_id: str, step: int, report: Report) -> TemporalNode:
        return self.nodes.pin(
            node_id,
            step,
            factory=lambda nid: self.graph.create_node(nid, label=report.node_label(nid)),
        )
