"""
REST API for overlaygraph.

Lets reporters deliver report fragments over HTTP and exposes merged
overlays for inspection.
"""

import os
import queue
from typing import Optional

from flask import Flask, Blueprint, jsonify, request, abort

from ..ingest.collector import PROCESSED, CheckpointCounter, ReportCollector, merge_fragments
from ..ingest.report_loader import ReportLoader
from ..logger import get_logger
from ..overlay.assembler import OverlayAssembler, OverlayMode
from ..reports.snapshot import ReportError
from ..viz.export import D3Exporter

logger = get_logger(__name__)


class CollectorAPI:
    """
    HTTP front end of the report collector.

    Endpoints:
      GET  /api/v1/health                  API health check
      POST /api/v1/reports/<participant>   Submit one report fragment
      POST /api/v1/merge/<protocol>        Merge fragments per checkpoint
      GET  /api/v1/overlay/<protocol>      Overlay slice as D3 JSON
                                             (?at=<time>, ?message=<id>)
    """

    def __init__(
        self,
        root: str,
        counter: Optional[CheckpointCounter] = None,
        maxsize: int = 64,
        submit_timeout: float = 5.0,
    ):
        self.root = root
        self.submit_timeout = submit_timeout
        self.collector = ReportCollector(root, counter or CheckpointCounter(), maxsize=maxsize)
        self.assembler = OverlayAssembler()

    def create_app(self) -> Flask:
        """Create and configure the Flask application."""
        app = Flask(__name__)
        api = Blueprint("api", __name__, url_prefix="/api/v1")
        collector = self.collector

        @api.route("/health")
        def health():
            return jsonify({
                "status": "ok",
                "queued": collector.queue.qsize(),
                "saved": len(collector.saved),
                "errors": len(collector.errors),
            })

        @api.route("/reports/<participant>", methods=["POST"])
        def submit_report(participant):
            data = request.get_json(silent=True)
            if not data or not isinstance(data, dict):
                abort(400, "Request must contain a JSON report object")
            try:
                checkpoint = collector.submit(participant, data, timeout=self.submit_timeout)
            except ReportError as e:
                abort(400, str(e))
            except queue.Full:
                abort(503, "Collector queue is full, retry later")
            return jsonify({"participant": participant, "checkpoint": checkpoint}), 202

        @api.route("/merge/<protocol>", methods=["POST"])
        def merge(protocol):
            collector.flush()
            try:
                paths = merge_fragments(self.root, protocol)
            except ReportError as e:
                abort(404, str(e))
            return jsonify({"protocol": protocol, "reports": len(paths)})

        @api.route("/overlay/<protocol>")
        def overlay(protocol):
            at = request.args.get("at", 0, type=float)
            message_id = request.args.get("message")
            mode = OverlayMode.DISSEMINATION if message_id else OverlayMode.STRUCTURAL
            loader = ReportLoader(os.path.join(self.root, PROCESSED, protocol))
            try:
                graph = self.assembler.build(loader, mode=mode, message_id=message_id)
            except ReportError as e:
                abort(404, str(e))
            except ValueError as e:
                abort(400, str(e))
            data = D3Exporter.to_d3_json(graph, at=at)
            data["boundary"] = graph.last_boundary
            return jsonify(data)

        app.register_blueprint(api)
        return app
