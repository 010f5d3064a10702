"""
Overlay assembler.

Folds an ordered report sequence into a TemporalGraph. Two construction
modes share the lifecycle trackers and attribute writers:

  - STRUCTURAL: topology and churn. Edges are derived from neighbor lists
    (or taken from explicit edge reports), nodes and edges live and die
    with the reports, global scalars are broadcast on every node.
  - DISSEMINATION: the propagation of one traced publication. Nodes are
    restricted to the message's topic and edges appear in hop order
    through the DisseminationAnimator, never disappearing again.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from ..graph.attributes import (
    EdgeAttributeProfile,
    EdgeAttributeWriter,
    NodeAttributeProfile,
    NodeAttributeWriter,
)
from ..graph.lifecycle import LifecycleTracker
from ..graph.metrics import hit_ratio, max_path_length
from ..graph.temporal import TemporalGraph
from ..logger import get_logger
from ..reports.snapshot import EdgeSnapshot, Report, ReportError
from .dissemination import DisseminationAnimator

logger = get_logger(__name__)


class OverlayMode(Enum):
    STRUCTURAL = "structural"
    DISSEMINATION = "dissemination"


@dataclass
class _Build:
    """Mutable state of one overlay build."""
    graph: TemporalGraph
    node_writer: NodeAttributeWriter
    edge_writer: EdgeAttributeWriter
    nodes: Optional[LifecycleTracker] = None
    edges: Optional[LifecycleTracker] = None
    report: Optional[Report] = None
    current_edges: dict = field(default_factory=dict)
    interval: int = 0


def derive_edges(report: Report, nodes: Optional[Iterable] = None) -> dict[str, EdgeSnapshot]:
    """
    Derive directed edges from the neighbor lists of a report.

    A neighbor that is not part of this report (down due to churn) yields
    no edge. Each edge is labelled with the topics both ends subscribe to.
    """
    edges = {}
    for node in (report.nodes.values() if nodes is None else nodes):
        for neighbor_id in sorted(node.neighbors):
            neighbor = report.node(neighbor_id)
            if neighbor is None:
                continue
            edge = EdgeSnapshot.between(
                node.id,
                neighbor_id,
                topics=frozenset(node.topics & neighbor.topics),
            )
            edges[edge.id] = edge
    return edges


class OverlayAssembler:
    """
    Build temporal overlays from report sequences.

    Profiles default to the mode's preset when not given. Each build starts
    from scratch; the assembler keeps no state between builds.
    """

    def __init__(
        self,
        node_profile: Optional[NodeAttributeProfile] = None,
        edge_profile: Optional[EdgeAttributeProfile] = None,
        derive_edges: bool = True,
    ):
        self.node_profile = node_profile
        self.edge_profile = edge_profile
        self.derive_edges = derive_edges

    def build(
        self,
        reports: Iterable[Report],
        mode: OverlayMode = OverlayMode.STRUCTURAL,
        message_id: Optional[str] = None,
    ) -> TemporalGraph:
        mode = OverlayMode(mode)
        if mode is OverlayMode.DISSEMINATION:
            if message_id is None:
                raise ValueError("Dissemination overlays need a message id to trace")
            return self.build_dissemination(reports, message_id)
        return self.build_structural(reports)

    def build_structural(self, reports: Iterable[Report]) -> TemporalGraph:
        """Topology/churn overlay over every report."""
        logger.info("Creating structural overlay")
        build = self._start(
            TemporalGraph(description="Structural Overlay"),
            self.node_profile or NodeAttributeProfile.structural(),
            self.edge_profile or EdgeAttributeProfile.structural(),
        )

        for report in reports:
            self._accept(build, report)
            self._fold_structural(build, report)
            build.interval += 1

        self._finish(build, build.interval)
        return build.graph

    def build_dissemination(self, reports: Iterable[Report], message_id: str) -> TemporalGraph:
        """Hop-ordered replay of one publication's dissemination."""
        logger.info("Creating dissemination overlay for publication %s", message_id)
        build = self._start(
            TemporalGraph(description=f"Dissemination Overlay for publication message {message_id}"),
            self.node_profile or NodeAttributeProfile.dissemination(),
            self.edge_profile or EdgeAttributeProfile.none(),
        )
        animator = DisseminationAnimator(
            message_id, build.graph, build.nodes, build.edges, build.edge_writer,
        )

        for report in reports:
            pub = report.publication(message_id)
            if pub is None:
                continue
            self._accept(build, report)

            subscribers = [n for n in report.nodes.values() if n.subscribes_to(pub.topic_id)]
            build.nodes.observe([n.id for n in subscribers], build.interval)
            self._write_nodes(build, report, subscribers)

            animator.schedule(report, build.interval)
            animator.materialize(build.interval, report)
            build.interval += 1

        if build.report is None:
            raise ValueError(f"Publication {message_id} does not appear in any report")

        animator.drain(build.interval, build.report)
        self._finish(build, animator.final_boundary(build.interval))
        return build.graph

    def _start(self, graph, node_profile, edge_profile) -> _Build:
        build = _Build(
            graph=graph,
            node_writer=NodeAttributeWriter(node_profile),
            edge_writer=EdgeAttributeWriter(edge_profile),
        )
        build.nodes = LifecycleTracker(
            lambda nid: graph.create_node(nid, label=build.report.node_label(nid)),
            kind="node",
        )
        build.edges = LifecycleTracker(
            lambda eid: self._create_edge(build, eid),
            kind="edge",
        )
        return build

    @staticmethod
    def _create_edge(build: _Build, edge_id: str):
        snapshot = build.current_edges[edge_id]
        return build.graph.create_edge(
            edge_id,
            build.nodes.resolve(snapshot.source_id),
            build.nodes.resolve(snapshot.target_id),
        )

    @staticmethod
    def _accept(build: _Build, report: Report):
        if build.report is None:
            build.graph.name = report.protocol_name
        elif report.protocol_name != build.graph.name:
            raise ReportError(
                f"Report {report.interval_index} belongs to {report.protocol_name}, "
                f"expected {build.graph.name}"
            )
        build.report = report

    def _fold_structural(self, build: _Build, report: Report):
        interval = build.interval
        if report.is_empty:
            logger.info("Report %s has no nodes", report.interval_index)

        if self.derive_edges:
            build.current_edges = derive_edges(report)
        else:
            build.current_edges = dict(report.edges)

        build.nodes.observe(report.nodes.keys(), interval)
        changes = build.edges.observe(build.current_edges.keys(), interval)

        # Edge attributes are labels fixed when the edge first appears
        for edge_id in changes.created:
            build.edge_writer.update(
                build.edges.get(edge_id),
                build.current_edges[edge_id],
                interval,
                interval + 1,
            )

        self._write_nodes(build, report, report.nodes.values())

    def _write_nodes(self, build: _Build, report: Report, snapshots):
        interval = build.interval
        writer = build.node_writer

        ratio = path_length = 0
        if writer.profile.hit_ratio:
            ratio = hit_ratio(report)
            if not report.publications:
                logger.info("No publications found for interval %s", interval)
            logger.debug("Hit-ratio at interval %s: %s", interval, ratio)
        if writer.profile.path_length:
            path_length = max_path_length(report)
            logger.debug("Max path length at interval %s: %s", interval, path_length)

        for snapshot in snapshots:
            node = build.nodes.get(snapshot.id)
            writer.update(node, snapshot, interval, interval + 1)
            writer.update_hit_ratio(node, ratio, interval, interval + 1)
            writer.update_path_length(node, path_length, interval, interval + 1)

    @staticmethod
    def _finish(build: _Build, boundary: int):
        if build.report is None:
            logger.warning("No reports to build an overlay from")
        build.nodes.finalize(boundary)
        build.edges.finalize(boundary)
        build.graph.finalize(boundary)
        logger.info(
            "%s: %d nodes, %d edges, %d intervals, boundary %s",
            build.graph.description,
            len(build.graph.nodes),
            len(build.graph.edges),
            build.interval,
            boundary,
        )
