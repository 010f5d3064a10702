"""Tests for the command line interface."""

import json
import os

import pytest
from click.testing import CliRunner
from overlaygraph.cli import cli
from overlaygraph.ingest.report_loader import ReportLoader, checkpoint_name
from overlaygraph.reports.snapshot import NodeSnapshot, Publication, Report, EdgeSnapshot


def _pub(hops):
    return Publication("m1", topic_id="t", original_sender_id="1", hop_count=hops)


@pytest.fixture
def report_dir(tmp_path):
    directory = tmp_path / "processed"
    for i in range(3):
        nodes = {
            "1": NodeSnapshot("1", neighbors=frozenset({"2"}), topics=frozenset({"t"})),
            "2": NodeSnapshot(
                "2",
                neighbors=frozenset({"1"}),
                topics=frozenset({"t"}),
                publications_received={"m1": _pub(1)} if i == 1 else {},
            ),
        }
        report = Report(
            protocol_id=1,
            protocol_name="example.Proto",
            interval_index=i,
            nodes=nodes,
            edges={"1->2": EdgeSnapshot.between("1", "2", publications={"m1": _pub(0)})} if i == 1 else {},
            publications={"m1": _pub(0)} if i == 1 else {},
        )
        ReportLoader.save(str(directory / f"{checkpoint_name(i)}_example.Proto.json"), report)
    return directory


class TestCLI:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_structural(self, report_dir, tmp_path):
        out = tmp_path / "structural.gexf"
        result = CliRunner().invoke(cli, ["structural", str(report_dir), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Nodes: 2" in result.output
        assert "Edges: 2" in result.output
        assert out.exists()

    def test_structural_default_path(self, report_dir, tmp_path):
        out_dir = tmp_path / "gexf"
        result = CliRunner().invoke(cli, ["structural", str(report_dir), "--out-dir", str(out_dir)])
        assert result.exit_code == 0, result.output
        files = os.listdir(out_dir)
        assert len(files) == 1
        assert files[0].endswith("_Proto_.gexf")

    def test_dissemination(self, report_dir, tmp_path):
        out = tmp_path / "m1.gexf"
        result = CliRunner().invoke(cli, ["dissemination", str(report_dir), "m1", "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Edges: 1" in result.output
        assert out.exists()

    def test_dissemination_unknown_message(self, report_dir):
        result = CliRunner().invoke(cli, ["dissemination", str(report_dir), "nope"])
        assert result.exit_code != 0
        assert "nope" in result.output

    def test_gap_reported(self, report_dir):
        os.remove(report_dir / f"{checkpoint_name(1)}_example.Proto.json")
        result = CliRunner().invoke(cli, ["structural", str(report_dir)])
        assert result.exit_code != 0
        assert "Missing report" in result.output

    def test_stats_json(self, report_dir):
        result = CliRunner().invoke(cli, ["stats", str(report_dir), "--json"])
        assert result.exit_code == 0, result.output
        lines = [json.loads(line) for line in result.output.splitlines()]
        assert [s["interval"] for s in lines] == [0, 1, 2]
        assert lines[1]["hit_ratio"] == 1.0

    def test_stats_text(self, report_dir):
        result = CliRunner().invoke(cli, ["stats", str(report_dir)])
        assert result.exit_code == 0, result.output
        assert "hit_ratio=1.000" in result.output
        assert "node_count_max: 2" in result.output

    def test_merge_missing(self, tmp_path):
        result = CliRunner().invoke(cli, ["merge", str(tmp_path), "proto"])
        assert result.exit_code != 0
