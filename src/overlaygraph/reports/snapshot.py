"""
Report snapshot model.

Immutable value types describing what the reporter observed during a single
reporting interval: per-node state, per-edge state and the publications in
flight. Reports are produced by simulation participants, merged per interval
by the collector and folded into a temporal graph by the overlay assembler.
"""

from dataclasses import dataclass, field
from typing import Optional


class ReportError(ValueError):
    """A report is missing, unreadable or structurally invalid."""


@dataclass(frozen=True)
class Publication:
    """A publication message as seen at one point of its dissemination.

    Identity is the message id; two copies of the same message at different
    hop counts compare equal.
    """
    msg_id: str
    topic_id: str = field(default="", compare=False)
    original_sender_id: str = field(default="", compare=False)
    source_id: str = field(default="", compare=False)
    destination_ids: tuple = field(default=(), compare=False)
    hop_count: int = field(default=0, compare=False)

    def __post_init__(self):
        if not self.msg_id:
            raise ValueError("Publication requires a message id")
        if self.hop_count < 0:
            raise ValueError(f"Negative hop count for message {self.msg_id}: {self.hop_count}")

    def incremented(self) -> "Publication":
        return self._copy(hop_count=self.hop_count + 1)

    def decremented(self) -> "Publication":
        return self._copy(hop_count=self.hop_count - 1)

    def forwarding_copy(self, destinations) -> "Publication":
        """Copy relayed one hop further towards new destinations."""
        return self._copy(
            destination_ids=tuple(destinations),
            hop_count=self.hop_count + 1,
        )

    def _copy(self, **changes) -> "Publication":
        values = {
            "msg_id": self.msg_id,
            "topic_id": self.topic_id,
            "original_sender_id": self.original_sender_id,
            "source_id": self.source_id,
            "destination_ids": self.destination_ids,
            "hop_count": self.hop_count,
        }
        values.update(changes)
        return Publication(**values)

    def __str__(self) -> str:
        return self.msg_id

    @classmethod
    def from_dict(cls, data: dict) -> "Publication":
        return cls(
            msg_id=str(data.get("msgId", data.get("msg_id", ""))),
            topic_id=str(data.get("topicId", data.get("topic_id", ""))),
            original_sender_id=str(data.get("originalSenderId", data.get("original_sender_id", ""))),
            source_id=str(data.get("sourceId", data.get("source_id", ""))),
            destination_ids=tuple(str(d) for d in data.get("destinationIds", data.get("destination_ids", []))),
            hop_count=int(data.get("hopCount", data.get("hop_count", 0))),
        )

    def to_dict(self) -> dict:
        return {
            "msgId": self.msg_id,
            "topicId": self.topic_id,
            "originalSenderId": self.original_sender_id,
            "sourceId": self.source_id,
            "destinationIds": list(self.destination_ids),
            "hopCount": self.hop_count,
        }


@dataclass(frozen=True)
class NodeSnapshot:
    """State of one participant during one reporting interval.

    Counters set to a negative value were not reported.
    """
    id: str
    neighbors: frozenset = field(default=frozenset(), compare=False)
    topics: frozenset = field(default=frozenset(), compare=False)
    subscription_size: int = field(default=0, compare=False)
    control_msgs_sent: int = field(default=0, compare=False)
    control_msgs_received: int = field(default=0, compare=False)
    bytes_sent: int = field(default=0, compare=False)
    bytes_received: int = field(default=0, compare=False)
    publications_sent: dict = field(default_factory=dict, compare=False)
    publications_received: dict = field(default_factory=dict, compare=False)
    duplicate_count: int = field(default=0, compare=False)

    def subscribes_to(self, topic: str) -> bool:
        return topic in self.topics

    def received_publication(self, msg_id: str) -> bool:
        return msg_id in self.publications_received

    @classmethod
    def from_dict(cls, data: dict, node_id: Optional[str] = None) -> "NodeSnapshot":
        nid = str(data.get("id") or node_id or "")
        if not nid:
            raise ReportError("Node has no id")
        return cls(
            id=nid,
            neighbors=frozenset(str(n) for n in data.get("neighbors") or []),
            topics=frozenset(str(t) for t in data.get("topics") or []),
            subscription_size=int(data.get("subscriptionSize", 0)),
            control_msgs_sent=int(data.get("controlMsgsSent", 0)),
            control_msgs_received=int(data.get("controlMsgsReceived", 0)),
            bytes_sent=int(data.get("bytesSent", data.get("bitsSent", 0))),
            bytes_received=int(data.get("bytesReceived", data.get("bitsReceived", 0))),
            publications_sent=_publications(data.get("publicationMsgsSent")),
            publications_received=_publications(data.get("publicationMsgsReceived")),
            duplicate_count=int(data.get("duplicateCount", 0)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "neighbors": sorted(self.neighbors),
            "topics": sorted(self.topics),
            "subscriptionSize": self.subscription_size,
            "controlMsgsSent": self.control_msgs_sent,
            "controlMsgsReceived": self.control_msgs_received,
            "bytesSent": self.bytes_sent,
            "bytesReceived": self.bytes_received,
            "publicationMsgsSent": {k: p.to_dict() for k, p in self.publications_sent.items()},
            "publicationMsgsReceived": {k: p.to_dict() for k, p in self.publications_received.items()},
            "duplicateCount": self.duplicate_count,
        }


@dataclass(frozen=True)
class EdgeSnapshot:
    """A directed link observed during one reporting interval."""
    id: str
    source_id: str = field(compare=False)
    target_id: str = field(compare=False)
    topics: frozenset = field(default=frozenset(), compare=False)
    control_msg_count: int = field(default=0, compare=False)
    publications: dict = field(default_factory=dict, compare=False)

    @staticmethod
    def make_id(source_id: str, target_id: str) -> str:
        return f"{source_id}->{target_id}"

    @classmethod
    def between(cls, source_id: str, target_id: str, **kwargs) -> "EdgeSnapshot":
        return cls(
            id=cls.make_id(source_id, target_id),
            source_id=source_id,
            target_id=target_id,
            **kwargs,
        )

    def __str__(self) -> str:
        return f"{self.source_id}->{self.target_id}"

    @classmethod
    def from_dict(cls, data: dict, edge_id: Optional[str] = None) -> "EdgeSnapshot":
        source = str(data.get("sourceId", ""))
        target = str(data.get("targetId", ""))
        if not source or not target:
            raise ReportError(f"Edge {edge_id or data.get('id')} is missing an endpoint")
        return cls(
            id=str(data.get("id") or edge_id or cls.make_id(source, target)),
            source_id=source,
            target_id=target,
            topics=frozenset(str(t) for t in data.get("topics") or []),
            control_msg_count=int(data.get("controlMsgCount", 0)),
            publications=_publications(data.get("publicationsMessages", data.get("publications"))),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "topics": sorted(self.topics),
            "controlMsgCount": self.control_msg_count,
            "publicationsMessages": {k: p.to_dict() for k, p in self.publications.items()},
        }


@dataclass(frozen=True)
class Report:
    """Complete system state for one reporting interval."""
    protocol_id: int
    protocol_name: str
    interval_index: int = 0
    nodes: dict = field(default_factory=dict)
    edges: dict = field(default_factory=dict)
    publications: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.protocol_name:
            raise ReportError(f"Report for interval {self.interval_index} has no protocol name")

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node(self, node_id: str) -> Optional[NodeSnapshot]:
        return self.nodes.get(node_id)

    def edge(self, edge_id: str) -> Optional[EdgeSnapshot]:
        return self.edges.get(edge_id)

    def publication(self, msg_id: str) -> Optional[Publication]:
        return self.publications.get(msg_id)

    def node_label(self, node_id: str) -> str:
        """Zero-padded label so numeric ids sort naturally in viewers."""
        if not node_id.isdigit():
            return node_id
        return node_id.zfill(len(str(len(self.nodes))))

    def topics(self) -> set:
        """Union of all topics subscribed to in this interval."""
        topics = set()
        for node in self.nodes.values():
            topics.update(node.topics)
        return topics

    @classmethod
    def from_dict(cls, data: dict) -> "Report":
        if not isinstance(data, dict):
            raise ReportError(f"Expected a JSON object, got {type(data).__name__}")
        try:
            nodes = {
                str(k): NodeSnapshot.from_dict(v, node_id=str(k))
                for k, v in (data.get("nodes") or {}).items()
            }
            edges = {
                str(k): EdgeSnapshot.from_dict(v, edge_id=str(k))
                for k, v in (data.get("edges") or {}).items()
            }
            return cls(
                protocol_id=int(data.get("protocolId", -1)),
                protocol_name=data.get("protocolName") or "",
                interval_index=int(data.get("intervalIndex", data.get("intervalCount", 0))),
                nodes=nodes,
                edges=edges,
                publications=_publications(data.get("publications")),
            )
        except ReportError:
            raise
        except (TypeError, AttributeError, ValueError) as e:
            raise ReportError(f"Malformed report: {e}") from e

    def to_dict(self) -> dict:
        return {
            "protocolId": self.protocol_id,
            "protocolName": self.protocol_name,
            "intervalIndex": self.interval_index,
            "nodes": {k: n.to_dict() for k, n in self.nodes.items()},
            "edges": {k: e.to_dict() for k, e in self.edges.items()},
            "publications": {k: p.to_dict() for k, p in self.publications.items()},
        }


def _publications(data) -> dict:
    """Parse a msg id -> publication mapping (None means empty)."""
    if not data:
        return {}
    result = {}
    for key, entry in data.items():
        pub = Publication.from_dict({"msgId": key, **entry})
        result[pub.msg_id] = pub
    return result
