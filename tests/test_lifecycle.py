"""Tests for entity lifecycle tracking."""

import pytest
from overlaygraph.graph.lifecycle import (
    DataConsistencyError,
    LifecycleState,
    LifecycleTracker,
)
from overlaygraph.graph.temporal import TemporalGraph


def _tracker():
    g = TemporalGraph()
    return g, LifecycleTracker(g.create_node, kind="node")


def _spells(entity):
    return [(s.start, s.end) for s in entity.spells]


class TestObserve:
    def test_first_sighting_creates(self):
        _, nodes = _tracker()
        changes = nodes.observe(["A", "B"], 0)
        assert sorted(changes.created) == ["A", "B"]
        assert nodes.state("A") is LifecycleState.ALIVE
        assert _spells(nodes.get("A")) == [(0, None)]

    def test_presence_extends(self):
        _, nodes = _tracker()
        nodes.observe(["A"], 0)
        changes = nodes.observe(["A"], 1)
        assert changes.extended == ["A"]
        assert _spells(nodes.get("A")) == [(0, 2)]

    def test_absence_closes(self):
        _, nodes = _tracker()
        nodes.observe(["A", "B"], 0)
        changes = nodes.observe(["A"], 1)
        assert changes.closed == ["B"]
        assert nodes.state("B") is LifecycleState.DEAD
        assert _spells(nodes.get("B")) == [(0, 1)]

    def test_reappearance_adds_spell_to_same_entity(self):
        g, nodes = _tracker()
        nodes.observe(["A", "B"], 0)
        first = nodes.get("B")
        nodes.observe(["A"], 1)
        changes = nodes.observe(["A", "B"], 2)
        assert changes.revived == ["B"]
        assert nodes.get("B") is first
        assert len(g.nodes) == 2
        assert _spells(first) == [(0, 1), (2, None)]

    def test_duplicate_ids_in_one_interval(self):
        _, nodes = _tracker()
        changes = nodes.observe(["A", "A"], 0)
        assert changes.created == ["A"]
        assert len(nodes) == 1

    def test_spells_never_overlap(self):
        _, nodes = _tracker()
        for interval, present in enumerate([["A"], [], ["A"], ["A"], [], [], ["A"]]):
            nodes.observe(present, interval)
        nodes.finalize(7)
        spells = _spells(nodes.get("A"))
        assert spells == [(0, 1), (2, 4), (6, 7)]
        for (_, end), (start, _) in zip(spells, spells[1:]):
            assert end <= start

    def test_stable_interval(self):
        _, nodes = _tracker()
        nodes.observe(["A"], 0)
        changes = nodes.observe(["A"], 1)
        assert changes.is_stable
        assert changes.change_magnitude == 0


class TestPinAndResolve:
    def test_pinned_entities_survive_absence(self):
        _, nodes = _tracker()
        nodes.pin("A", 0)
        nodes.observe([], 1)
        nodes.observe([], 2)
        assert nodes.state("A") is LifecycleState.ALIVE
        nodes.finalize(5)
        assert _spells(nodes.get("A")) == [(0, 5)]

    def test_pin_revives_dead_entity(self):
        _, nodes = _tracker()
        nodes.observe(["A"], 0)
        nodes.observe([], 1)
        nodes.pin("A", 3)
        assert _spells(nodes.get("A")) == [(0, 1), (3, None)]

    def test_pin_with_factory(self):
        g = TemporalGraph()
        nodes = LifecycleTracker(g.create_node, kind="node")
        node = nodes.pin("7", 2, factory=lambda nid: g.create_node(nid, label="007"))
        assert node.label == "007"

    def test_resolve_unknown(self):
        _, nodes = _tracker()
        with pytest.raises(DataConsistencyError):
            nodes.resolve("ghost")

    def test_resolve_dead(self):
        _, nodes = _tracker()
        nodes.observe(["A"], 0)
        nodes.observe([], 1)
        assert nodes.resolve("A").id == "A"
        assert nodes.dead_ids == {"A"}


class TestFinalize:
    def test_finalize_ends_alive_spells(self):
        _, nodes = _tracker()
        nodes.observe(["A", "B"], 0)
        nodes.observe(["A"], 1)
        nodes.finalize(2)
        assert _spells(nodes.get("A")) == [(0, 2)]
        assert _spells(nodes.get("B")) == [(0, 1)]

    def test_finalize_once(self):
        _, nodes = _tracker()
        nodes.observe(["A"], 0)
        nodes.finalize(1)
        with pytest.raises(RuntimeError):
            nodes.finalize(2)
        with pytest.raises(RuntimeError):
            nodes.observe(["A"], 1)

    def test_boundary_before_start(self):
        _, nodes = _tracker()
        nodes.observe(["A"], 3)
        with pytest.raises(ValueError):
            nodes.finalize(3)
