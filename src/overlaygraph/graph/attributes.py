"""
Attribute profiles and timeline writers.

A profile is an immutable set of flags choosing which reported metrics end
up as dynamic attributes on the temporal graph. Writers translate node and
edge snapshots into attribute timeline entries for one reporting interval.

Validity conventions:
  - rate/count metrics hold for exactly one interval: [start, end)
  - descriptive labels (topics, subscription size) are open-ended and hold
    until overwritten
  - hop counts are placed along the animation timeline at interval + hops
"""

from dataclasses import dataclass, fields
from typing import Optional

from .temporal import TemporalEdge, TemporalNode
from ..reports.snapshot import EdgeSnapshot, NodeSnapshot

# Node attribute titles
TOPICS = "Topics"
SUBSCRIPTION_SIZE = "Subscription Size"
CONTROL_MSGS_SENT = "Control Messages Sent"
CONTROL_MSGS_RECEIVED = "Control Messages Received"
KB_SENT = "Kb Sent"
KB_RECEIVED = "Kb Received"
PUBLICATIONS_SENT = "Publications Sent"
PUBLICATIONS_RECEIVED = "Publications Received"
HOP_COUNT = "Hop Count"
DUPLICATE_MESSAGES = "Duplicate Messages"
HIT_RATIO = "Hit Ratio"
PATH_LENGTH = "Path Length"

# Edge attribute titles
EDGE_TOPICS = "Topics"
CONTROL_MSG_COUNT = "Control Messages"
PUBLICATIONS = "Publications"


@dataclass(frozen=True)
class NodeAttributeProfile:
    """Which node attributes to record."""
    topics: bool = False
    subscription_size: bool = False
    control_msgs_sent: bool = False
    control_msgs_received: bool = False
    kb_sent: bool = False
    kb_received: bool = False
    publications_sent: bool = False
    publications_received: bool = False
    hop_count: bool = False
    duplicate_count: bool = False
    hit_ratio: bool = False
    path_length: bool = False

    @classmethod
    def structural(cls) -> "NodeAttributeProfile":
        return cls(
            topics=True,
            subscription_size=True,
            control_msgs_sent=True,
            control_msgs_received=True,
            kb_sent=True,
            kb_received=True,
            duplicate_count=True,
            hit_ratio=True,
            path_length=True,
        )

    @classmethod
    def dissemination(cls) -> "NodeAttributeProfile":
        return cls(topics=True, hop_count=True, duplicate_count=True)

    @classmethod
    def all(cls) -> "NodeAttributeProfile":
        return cls(**{f.name: True for f in fields(cls)})

    @property
    def includes_global_scalars(self) -> bool:
        return self.hit_ratio or self.path_length

    def enabled(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]


@dataclass(frozen=True)
class EdgeAttributeProfile:
    """Which edge attributes to record."""
    topics: bool = False
    control_msg_count: bool = False
    publications: bool = False

    @classmethod
    def structural(cls) -> "EdgeAttributeProfile":
        return cls(topics=True)

    @classmethod
    def none(cls) -> "EdgeAttributeProfile":
        return cls()

    @classmethod
    def all(cls) -> "EdgeAttributeProfile":
        return cls(topics=True, control_msg_count=True, publications=True)

    def enabled(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]


def _check_bounds(start: float, end: float):
    if start >= end:
        raise ValueError("Start value must be lower than end value")


def _label(values) -> str:
    """Stable textual label for a collection of ids."""
    return "[" + ", ".join(sorted(str(v) for v in values)) + "]"


def hop_count_key(msg_id: str, topic_id: str) -> str:
    return f"{HOP_COUNT} P{msg_id} T{topic_id}"


class NodeAttributeWriter:
    """
    Write node attributes for one reporting interval.

    Hop count attribute keys are created lazily, one per traced message id,
    and remembered in hop_count_keys.
    """

    def __init__(self, profile: Optional[NodeAttributeProfile] = None):
        self.profile = profile or NodeAttributeProfile()
        self.hop_count_keys: dict[str, str] = {}

    def update(self, node: TemporalNode, snapshot: NodeSnapshot, start: float, end: float) -> None:
        """Record every attribute the profile selects."""
        _check_bounds(start, end)
        p = self.profile

        if p.topics and snapshot.topics:
            node.set_attribute(TOPICS, _label(snapshot.topics), start)
        if p.subscription_size and snapshot.subscription_size >= 0:
            node.set_attribute(SUBSCRIPTION_SIZE, snapshot.subscription_size, start)

        if p.control_msgs_sent and snapshot.control_msgs_sent >= 0:
            node.set_attribute(CONTROL_MSGS_SENT, snapshot.control_msgs_sent, start, end)
        if p.control_msgs_received and snapshot.control_msgs_received >= 0:
            node.set_attribute(CONTROL_MSGS_RECEIVED, snapshot.control_msgs_received, start, end)

        if p.kb_sent and snapshot.bytes_sent >= 0:
            node.set_attribute(KB_SENT, snapshot.bytes_sent // 1000, start, end)
        if p.kb_received and snapshot.bytes_received >= 0:
            node.set_attribute(KB_RECEIVED, snapshot.bytes_received // 1000, start, end)

        if p.publications_sent and snapshot.publications_sent:
            node.set_attribute(PUBLICATIONS_SENT, _label(snapshot.publications_sent), start, end)
        if p.publications_received and snapshot.publications_received:
            node.set_attribute(PUBLICATIONS_RECEIVED, _label(snapshot.publications_received), start, end)

        if p.hop_count:
            self.update_hop_count(node, snapshot, start)

        if p.duplicate_count and snapshot.duplicate_count >= 0:
            node.set_attribute(DUPLICATE_MESSAGES, snapshot.duplicate_count, start, end)

    def update_hop_count(self, node: TemporalNode, snapshot: NodeSnapshot, start: float) -> None:
        """Place each received message's hop count at start + hops."""
        for pub in snapshot.publications_received.values():
            key = self.hop_count_keys.get(pub.msg_id)
            if key is None:
                key = hop_count_key(pub.msg_id, pub.topic_id)
                self.hop_count_keys[pub.msg_id] = key
            node.set_attribute(key, pub.hop_count, start + pub.hop_count)

    def update_hit_ratio(self, node: TemporalNode, hit_ratio: float, start: float, end: float) -> None:
        _check_bounds(start, end)
        if self.profile.hit_ratio:
            node.set_attribute(HIT_RATIO, float(hit_ratio), start, end)

    def update_path_length(self, node: TemporalNode, path_length: int, start: float, end: float) -> None:
        _check_bounds(start, end)
        if self.profile.path_length:
            node.set_attribute(PATH_LENGTH, int(path_length), start, end)


class EdgeAttributeWriter:
    """Write edge attributes for one reporting interval."""

    def __init__(self, profile: Optional[EdgeAttributeProfile] = None):
        self.profile = profile or EdgeAttributeProfile()

    def update(self, edge: TemporalEdge, snapshot: EdgeSnapshot, start: float, end: float) -> None:
        _check_bounds(start, end)
        p = self.profile

        # Topics decide which topic overlay an edge belongs to when filtering
        if p.topics and snapshot.topics:
            edge.set_attribute(EDGE_TOPICS, _label(snapshot.topics), start)
        if p.control_msg_count and snapshot.control_msg_count >= 0:
            edge.set_attribute(CONTROL_MSG_COUNT, snapshot.control_msg_count, start, end)
        if p.publications and snapshot.publications:
            edge.set_attribute(PUBLICATIONS, _label(snapshot.publications), start, end)
