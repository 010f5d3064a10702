"""
Temporal graph model.

Holds the dynamic graph produced by an overlay build: nodes and edges with
lifetimes expressed as spells, and attribute timelines of time-bounded
values. Converts to a dynamic NetworkX DiGraph for GEXF export and to static
per-instant slices for analysis.
"""

from dataclasses import dataclass
from typing import Optional
import numpy as np
import networkx as nx


@dataclass
class Spell:
    """Half-open validity interval [start, end). end=None means still open."""
    start: float
    end: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def contains(self, t: float) -> bool:
        return self.start <= t and (self.end is None or t < self.end)


@dataclass
class AttributeValue:
    """One entry of an attribute timeline."""
    value: object
    start: float
    end: Optional[float] = None

    def contains(self, t: float) -> bool:
        return self.start <= t and (self.end is None or t < self.end)


class TemporalEntity:
    """Common spell and attribute bookkeeping for nodes and edges."""

    def __init__(self, entity_id: str, label: Optional[str] = None):
        self.id = entity_id
        self.label = label if label is not None else entity_id
        self.spells: list[Spell] = []
        self.attributes: dict[str, list[AttributeValue]] = {}
        self._finalized = False

    @property
    def current_spell(self) -> Optional[Spell]:
        if self.spells and self.spells[-1].is_open:
            return self.spells[-1]
        return None

    @property
    def last_spell(self) -> Optional[Spell]:
        return self.spells[-1] if self.spells else None

    def add_spell(self, start: float, end: Optional[float] = None) -> Spell:
        """Append a spell; spells must stay strictly increasing and disjoint."""
        self._check_mutable()
        if end is not None and start >= end:
            raise ValueError(f"Spell for {self.id} must start before it ends: [{start}, {end})")
        if self.spells:
            last = self.spells[-1]
            if last.end is None:
                raise ValueError(f"{self.id} already has an open spell starting at {last.start}")
            if start < last.end:
                raise ValueError(
                    f"Spell [{start}, {end}) for {self.id} overlaps [{last.start}, {last.end})"
                )
        spell = Spell(start=start, end=end)
        self.spells.append(spell)
        return spell

    def set_attribute(
        self,
        key: str,
        value: object,
        start: float,
        end: Optional[float] = None,
    ) -> AttributeValue:
        """
        Record an attribute value.

        Bounded values (end given) require start < end. Open-ended values
        hold until overwritten: writing a different value closes the
        previous open entry where the new one starts. An open-ended value
        starting before the latest entry is inserted in start order and
        holds until the next entry begins.
        """
        self._check_mutable()
        if end is not None and start >= end:
            raise ValueError("Start value must be lower than end value")

        timeline = self.attributes.setdefault(key, [])
        if end is None and timeline:
            if start < timeline[-1].start:
                return self._insert_open(timeline, value, start)
            current = timeline[-1]
            if current.end is None:
                if current.value == value:
                    return current
                if start == current.start:
                    current.value = value
                    return current
                current.end = start

        entry = AttributeValue(value=value, start=start, end=end)
        timeline.append(entry)
        return entry

    @staticmethod
    def _insert_open(timeline: list, value: object, start: float) -> AttributeValue:
        index = next(i for i, e in enumerate(timeline) if e.start >= start)
        following = timeline[index]
        if following.start == start or following.value == value:
            # Same start: latest write wins. Same value: the entry starts earlier.
            following.value = value
            following.start = start
            entry = following
        else:
            entry = AttributeValue(value=value, start=start, end=following.start)
            timeline.insert(index, entry)
        if index > 0:
            previous = timeline[index - 1]
            if previous.end is None or previous.end > start:
                previous.end = start
        return entry

    def attribute_at(self, key: str, t: float) -> Optional[object]:
        """Value of an attribute valid at time t, latest entry wins."""
        for entry in reversed(self.attributes.get(key, [])):
            if entry.contains(t):
                return entry.value
        return None

    def is_alive_at(self, t: float) -> bool:
        return any(spell.contains(t) for spell in self.spells)

    def close(self, boundary: float) -> None:
        """Close the open spell, if any, at boundary."""
        spell = self.current_spell
        if spell is None:
            return
        if boundary <= spell.start:
            raise ValueError(
                f"Cannot close spell of {self.id} starting at {spell.start} at {boundary}"
            )
        spell.end = boundary

    def close_attributes(self, boundary: float) -> None:
        """End open-ended attribute values at boundary.

        A value that only starts at or after the boundary keeps one unit of
        validity.
        """
        for timeline in self.attributes.values():
            for entry in timeline:
                if entry.end is None:
                    entry.end = boundary if boundary > entry.start else entry.start + 1

    def _check_mutable(self):
        if self._finalized:
            raise RuntimeError(f"{self.id} belongs to a finalized graph")

    def _spell_tuples(self) -> list[tuple]:
        return [
            (float(s.start), None if s.end is None else float(s.end))
            for s in self.spells
        ]

    def _attribute_tuples(self) -> dict[str, list[tuple]]:
        return {
            key: [
                (
                    entry.value,
                    float(entry.start),
                    None if entry.end is None else float(entry.end),
                )
                for entry in timeline
            ]
            for key, timeline in self.attributes.items()
            if timeline
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r}, spells={len(self.spells)})"


class TemporalNode(TemporalEntity):
    """A participant of the overlay."""


class TemporalEdge(TemporalEntity):
    """A directed overlay link between two temporal nodes."""

    def __init__(self, entity_id: str, source: TemporalNode, target: TemporalNode,
                 label: Optional[str] = None):
        super().__init__(entity_id, label)
        self.source = source
        self.target = target


class TemporalGraph:
    """
    In-memory dynamic graph assembled from a report sequence.

    Provides:
      - Node/edge creation with spell and attribute timelines
      - One-shot finalization closing every open spell
      - Conversion to a dynamic NetworkX DiGraph (GEXF-ready)
      - Static slices and evolution statistics
    """

    def __init__(self, name: str = "", description: str = ""):
        self.name = name
        self.description = description
        self.last_boundary: Optional[float] = None
        self._nodes: dict[str, TemporalNode] = {}
        self._edges: dict[str, TemporalEdge] = {}

    @property
    def nodes(self) -> list[TemporalNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> list[TemporalEdge]:
        return list(self._edges.values())

    @property
    def is_finalized(self) -> bool:
        return self.last_boundary is not None

    def node(self, node_id: str) -> Optional[TemporalNode]:
        return self._nodes.get(node_id)

    def edge(self, edge_id: str) -> Optional[TemporalEdge]:
        return self._edges.get(edge_id)

    def create_node(self, node_id: str, label: Optional[str] = None) -> TemporalNode:
        self._check_mutable()
        if node_id in self._nodes:
            raise ValueError(f"Node {node_id} already exists")
        node = TemporalNode(node_id, label)
        self._nodes[node_id] = node
        return node

    def create_edge(
        self,
        edge_id: str,
        source: TemporalNode,
        target: TemporalNode,
        label: Optional[str] = None,
    ) -> TemporalEdge:
        self._check_mutable()
        if edge_id in self._edges:
            raise ValueError(f"Edge {edge_id} already exists")
        for endpoint in (source, target):
            if self._nodes.get(endpoint.id) is not endpoint:
                raise ValueError(f"Endpoint {endpoint.id} of edge {edge_id} is not in this graph")
        edge = TemporalEdge(edge_id, source, target, label)
        self._edges[edge_id] = edge
        return edge

    def finalize(self, last_boundary: float) -> None:
        """Close all remaining open spells and attribute values at last_boundary. Only once."""
        if self.is_finalized:
            raise RuntimeError(f"Graph already finalized at {self.last_boundary}")
        for entity in self._entities():
            entity.close(last_boundary)
            entity.close_attributes(last_boundary)
        for entity in self._entities():
            entity._finalized = True
        self.last_boundary = last_boundary

    def alive_at(self, t: float) -> tuple[list[TemporalNode], list[TemporalEdge]]:
        nodes = [n for n in self._nodes.values() if n.is_alive_at(t)]
        edges = [e for e in self._edges.values() if e.is_alive_at(t)]
        return nodes, edges

    def snapshot(self, t: float) -> nx.DiGraph:
        """Static DiGraph of everything alive at t, with attribute values valid at t."""
        G = nx.DiGraph(name=self.name, time=t)
        nodes, edges = self.alive_at(t)
        for node in nodes:
            G.add_node(node.id, label=node.label, **_values_at(node, t))
        for edge in edges:
            G.add_edge(
                edge.source.id,
                edge.target.id,
                id=edge.id,
                label=edge.label,
                **_values_at(edge, t),
            )
        return G

    def to_networkx(self) -> nx.DiGraph:
        """
        Dynamic DiGraph carrying spells and timelines.

        Nodes and edges get a 'spells' list of (start, end) tuples and each
        attribute becomes a list of (value, start, end) tuples, which is the
        layout networkx.write_gexf understands for dynamic graphs.
        """
        G = nx.DiGraph(name=self.name)
        for node in self._nodes.values():
            G.add_node(
                node.id,
                label=node.label,
                spells=node._spell_tuples(),
                **node._attribute_tuples(),
            )
        for edge in self._edges.values():
            G.add_edge(
                edge.source.id,
                edge.target.id,
                id=edge.id,
                label=edge.label,
                spells=edge._spell_tuples(),
                **edge._attribute_tuples(),
            )
        return G

    def evolution_stats(self) -> dict:
        """Compute statistics about overlay evolution over the graph's lifetime."""
        horizon = self._horizon()
        if horizon <= 0:
            return {"intervals": 0, "nodes": len(self._nodes), "edges": len(self._edges)}

        steps = np.arange(int(np.ceil(horizon)))
        node_counts = np.array([
            sum(1 for n in self._nodes.values() if n.is_alive_at(t)) for t in steps
        ])
        edge_counts = np.array([
            sum(1 for e in self._edges.values() if e.is_alive_at(t)) for t in steps
        ])

        node_spells = [s for n in self._nodes.values() for s in n.spells]
        edge_spells = [s for e in self._edges.values() for s in e.spells]

        return {
            "intervals": len(steps),
            "nodes": len(self._nodes),
            "edges": len(self._edges),
            "node_count_mean": float(np.mean(node_counts)),
            "node_count_std": float(np.std(node_counts)),
            "node_count_max": int(np.max(node_counts)),
            "edge_count_mean": float(np.mean(edge_counts)),
            "edge_count_std": float(np.std(edge_counts)),
            "edge_count_max": int(np.max(edge_counts)),
            # A node with k spells churned k - 1 times
            "node_rejoins": len(node_spells) - len(self._nodes),
            "edge_rejoins": len(edge_spells) - len(self._edges),
            "node_departures": sum(1 for s in node_spells if s.end is not None and s.end < horizon),
            "edge_departures": sum(1 for s in edge_spells if s.end is not None and s.end < horizon),
        }

    def _horizon(self) -> float:
        if self.last_boundary is not None:
            return self.last_boundary
        bounds = [
            s.end if s.end is not None else s.start + 1
            for entity in self._entities()
            for s in entity.spells
        ]
        return max(bounds, default=0)

    def _entities(self):
        yield from self._nodes.values()
        yield from self._edges.values()

    def _check_mutable(self):
        if self.is_finalized:
            raise RuntimeError("Cannot modify a finalized graph")

    def __repr__(self) -> str:
        return f"TemporalGraph(nodes={len(self._nodes)}, edges={len(self._edges)})"


def _values_at(entity: TemporalEntity, t: float) -> dict:
    values = {}
    for key in entity.attributes:
        value = entity.attribute_at(key, t)
        if value is not None:
            values[key] = value
    return values
