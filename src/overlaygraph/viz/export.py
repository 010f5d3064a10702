"""
Visualization export for temporal overlays.

Exports finished overlays to dynamic GEXF (Gephi timeline playback) and
per-instant D3.js force-directed JSON slices.
"""

import json
import os
import time
from typing import Optional
import networkx as nx

from ..graph.temporal import TemporalGraph
from ..logger import get_logger

logger = get_logger(__name__)


class GexfExporter:
    """Export temporal graphs to dynamic GEXF files."""

    VERSION = "1.2draft"

    @staticmethod
    def to_string(graph: TemporalGraph) -> str:
        """Serialize to a GEXF document string."""
        G = graph.to_networkx()
        return "\n".join(nx.generate_gexf(G, version=GexfExporter.VERSION))

    @staticmethod
    def write(graph: TemporalGraph, filepath: str) -> str:
        """Write a GEXF file, creating the parent directory if needed."""
        if not graph.is_finalized:
            raise ValueError("Only finalized overlays can be exported")
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        nx.write_gexf(graph.to_networkx(), filepath, version=GexfExporter.VERSION)
        logger.info("Writing GEXF file to %s", os.path.abspath(filepath))
        return filepath


def default_output_path(
    out_dir: str,
    protocol_name: str,
    message_id: Optional[str] = None,
) -> str:
    """<out_dir>/<timestamp>_<protocol short name>_<message id>.gexf"""
    timestamp = time.strftime("%Y-%m-%d_%H:%M:%S")
    short_name = protocol_name.split(".")[-1]
    return os.path.join(out_dir, f"{timestamp}_{short_name}_{message_id or ''}.gexf")


class D3Exporter:
    """Export a temporal graph slice to D3.js force-directed JSON format."""

    @staticmethod
    def to_d3_json(graph: TemporalGraph, at: float = 0) -> dict:
        """
        Convert the slice alive at time `at` to D3 JSON.

        Returns dict with 'time', 'nodes' and 'links' arrays.
        """
        G = graph.snapshot(at)
        node_map = {n: i for i, n in enumerate(G.nodes())}

        nodes = []
        for node, data in G.nodes(data=True):
            d = {"id": node, "index": node_map[node]}
            d.update({k: _serialize(v) for k, v in data.items()})
            nodes.append(d)

        links = []
        for u, v, data in G.edges(data=True):
            link = {"source": node_map[u], "target": node_map[v]}
            link.update({k: _serialize(val) for k, val in data.items()})
            links.append(link)

        return {"time": at, "nodes": nodes, "links": links}

    @staticmethod
    def save(filepath: str, graph: TemporalGraph, at: float = 0):
        """Save D3.js JSON to file."""
        data = D3Exporter.to_d3_json(graph, at=at)
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2, default=str)


def _serialize(value):
    """Make a value JSON-serializable."""
    if isinstance(value, (list, dict, str, int, float, bool, type(None))):
        return value
    return str(value)
