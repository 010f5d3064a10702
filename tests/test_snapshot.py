"""Tests for the report snapshot model."""

import pytest
from overlaygraph.reports.snapshot import (
    EdgeSnapshot,
    NodeSnapshot,
    Publication,
    Report,
    ReportError,
)


def _report_dict():
    return {
        "protocolId": 3,
        "protocolName": "example.protocols.PolderCast",
        "intervalIndex": 4,
        "nodes": {
            "1": {
                "neighbors": ["2"],
                "topics": ["t1", "t2"],
                "subscriptionSize": 2,
                "controlMsgsSent": 10,
                "controlMsgsReceived": 7,
                "bitsSent": 4500,
                "publicationMsgsReceived": {
                    "m1": {"topicId": "t1", "originalSenderId": "2", "hopCount": 1},
                },
            },
            "2": {"neighbors": ["1"], "topics": ["t1"]},
        },
        "edges": {
            "1->2": {"sourceId": "1", "targetId": "2", "controlMsgCount": 3},
        },
        "publications": {
            "m1": {"topicId": "t1", "originalSenderId": "2"},
        },
    }


class TestPublication:
    def test_identity_is_message_id(self):
        a = Publication("m1", topic_id="t1", hop_count=0)
        b = Publication("m1", topic_id="t1", hop_count=4)
        assert a == b
        assert hash(a) == hash(b)

    def test_incremented(self):
        pub = Publication("m1", hop_count=2)
        assert pub.incremented().hop_count == 3
        assert pub.hop_count == 2

    def test_decrement_below_zero_rejected(self):
        with pytest.raises(ValueError):
            Publication("m1", hop_count=0).decremented()

    def test_negative_hop_count_rejected(self):
        with pytest.raises(ValueError):
            Publication("m1", hop_count=-1)

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            Publication("")

    def test_forwarding_copy(self):
        pub = Publication("m1", source_id="1", hop_count=1)
        copy = pub.forwarding_copy(["3", "4"])
        assert copy.destination_ids == ("3", "4")
        assert copy.hop_count == 2

    def test_from_dict_snake_case(self):
        pub = Publication.from_dict({"msg_id": "m9", "topic_id": "t", "hop_count": 2})
        assert pub.msg_id == "m9"
        assert pub.topic_id == "t"
        assert pub.hop_count == 2


class TestNodeSnapshot:
    def test_from_dict(self):
        node = NodeSnapshot.from_dict(_report_dict()["nodes"]["1"], node_id="1")
        assert node.id == "1"
        assert node.neighbors == frozenset({"2"})
        assert node.subscribes_to("t2")
        assert node.bytes_sent == 4500
        assert node.received_publication("m1")
        assert node.publications_received["m1"].hop_count == 1

    def test_missing_id(self):
        with pytest.raises(ReportError):
            NodeSnapshot.from_dict({})

    def test_null_id_falls_back_to_key(self):
        assert NodeSnapshot.from_dict({"id": None}, node_id="5").id == "5"

    def test_null_id_without_key(self):
        with pytest.raises(ReportError):
            NodeSnapshot.from_dict({"id": None})

    def test_null_id_in_report(self):
        data = _report_dict()
        data["nodes"]["2"]["id"] = None
        assert Report.from_dict(data).nodes["2"].id == "2"


class TestEdgeSnapshot:
    def test_between(self):
        edge = EdgeSnapshot.between("a", "b")
        assert edge.id == "a->b"
        assert str(edge) == "a->b"

    def test_null_id_uses_endpoints(self):
        edge = EdgeSnapshot.from_dict({"id": None, "sourceId": "a", "targetId": "b"})
        assert edge.id == "a->b"

    def test_missing_endpoint(self):
        with pytest.raises(ReportError):
            EdgeSnapshot.from_dict({"sourceId": "a"}, edge_id="a->?")


class TestReport:
    def test_from_dict(self):
        report = Report.from_dict(_report_dict())
        assert report.protocol_name == "example.protocols.PolderCast"
        assert report.interval_index == 4
        assert set(report.nodes) == {"1", "2"}
        assert report.edge("1->2").control_msg_count == 3
        assert report.publication("m1").original_sender_id == "2"
        assert report.topics() == {"t1", "t2"}

    def test_absent_lookups(self):
        report = Report.from_dict(_report_dict())
        assert report.node("99") is None
        assert report.edge("1->99") is None
        assert report.publication("nope") is None

    def test_missing_protocol_name(self):
        data = _report_dict()
        del data["protocolName"]
        with pytest.raises(ReportError):
            Report.from_dict(data)

    def test_malformed_counter(self):
        data = _report_dict()
        data["nodes"]["1"]["controlMsgsSent"] = "lots"
        with pytest.raises(ReportError):
            Report.from_dict(data)

    def test_not_an_object(self):
        with pytest.raises(ReportError):
            Report.from_dict([1, 2, 3])

    def test_to_dict_keeps_wire_keys(self):
        data = Report.from_dict(_report_dict()).to_dict()
        assert data["protocolName"] == "example.protocols.PolderCast"
        assert data["nodes"]["1"]["controlMsgsSent"] == 10
        assert data["edges"]["1->2"]["sourceId"] == "1"
        assert Report.from_dict(data).node("1").topics == frozenset({"t1", "t2"})

    def test_node_label_padding(self):
        nodes = {str(i): NodeSnapshot(str(i)) for i in range(12)}
        report = Report(protocol_id=0, protocol_name="p", nodes=nodes)
        assert report.node_label("3") == "03"
        assert report.node_label("11") == "11"
        assert report.node_label("peer-a") == "peer-a"

    def test_is_empty(self):
        assert Report(protocol_id=0, protocol_name="p").is_empty
