"""
Global per-interval scalars computed from a raw report.

These are best-effort secondary metrics: empty inputs yield 0 instead of
raising.
"""

from collections import defaultdict
from typing import Optional
import numpy as np

from ..reports.snapshot import Report


def subscribers_by_topic(report: Report) -> dict[str, set]:
    """Map each topic to the ids of nodes subscribed to it."""
    subscribers = defaultdict(set)
    for node in report.nodes.values():
        for topic in node.topics:
            subscribers[topic].add(node.id)
    return dict(subscribers)


def publication_hit_ratio(report: Report, msg_id: str, subscribers: Optional[dict] = None) -> float:
    """
    Fraction of a publication's topic subscribers that received it.

    The publisher counts as a recipient when it subscribes to the topic
    and did not deliver the message to itself.
    """
    pub = report.publication(msg_id)
    if pub is None:
        return 0.0
    if subscribers is None:
        subscribers = subscribers_by_topic(report)

    topic_subscribers = subscribers.get(pub.topic_id, set())
    if not topic_subscribers:
        return 0.0

    hits = sum(
        1 for sid in topic_subscribers
        if report.nodes[sid].received_publication(pub.msg_id)
    )

    publisher = report.node(pub.original_sender_id)
    if (
        publisher is not None
        and publisher.subscribes_to(pub.topic_id)
        and not publisher.received_publication(pub.msg_id)
    ):
        hits += 1

    return hits / len(topic_subscribers)


def hit_ratio(report: Report) -> float:
    """Mean publication hit ratio for the interval, 0 without publications."""
    if not report.publications:
        return 0.0
    subscribers = subscribers_by_topic(report)
    ratios = [
        publication_hit_ratio(report, msg_id, subscribers)
        for msg_id in report.publications
    ]
    return float(np.mean(ratios))


def _received_hops(report: Report) -> list[int]:
    return [
        pub.hop_count
        for node in report.nodes.values()
        for pub in node.publications_received.values()
    ]


def max_path_length(report: Report) -> int:
    hops = _received_hops(report)
    return max(hops) if hops else 0


def min_path_length(report: Report) -> int:
    hops = _received_hops(report)
    return min(hops) if hops else 0


def average_path_length(report: Report) -> float:
    """Mean over messages of the longest hop count each one reached."""
    longest: dict[str, int] = {}
    for node in report.nodes.values():
        for pub in node.publications_received.values():
            longest[pub.msg_id] = max(longest.get(pub.msg_id, 0), pub.hop_count)
    if not longest:
        return 0.0
    return float(np.mean(list(longest.values())))


def interval_summary(report: Report) -> dict:
    """All global scalars for one report."""
    return {
        "interval": report.interval_index,
        "nodes": len(report.nodes),
        "publications": len(report.publications),
        "hit_ratio": hit_ratio(report),
        "max_path_length": max_path_length(report),
        "min_path_length": min_path_length(report),
        "average_path_length": average_path_length(report),
    }
