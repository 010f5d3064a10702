"""
overlaygraph CLI: Command-line interface for overlay reconstruction.

Commands:
  structural    Build a structural (topology/churn) overlay
  dissemination Build a dissemination overlay for one publication
  merge         Merge collected report fragments per checkpoint
  stats         Print per-interval global scalars of a report directory
  serve         Start the HTTP report collector
"""

import json

import click

from .graph.attributes import EdgeAttributeProfile, NodeAttributeProfile
from .graph.lifecycle import DataConsistencyError
from .graph.metrics import interval_summary
from .ingest.report_loader import ReportLoader
from .logger import set_level
from .overlay.assembler import OverlayAssembler, OverlayMode
from .reports.snapshot import ReportError
from .viz.export import GexfExporter, default_output_path


def _profiles(mode: OverlayMode, preset: str):
    if preset == "all":
        return NodeAttributeProfile.all(), EdgeAttributeProfile.all()
    if preset == "minimal":
        return NodeAttributeProfile(topics=True), EdgeAttributeProfile.none()
    if mode is OverlayMode.DISSEMINATION:
        return NodeAttributeProfile.dissemination(), EdgeAttributeProfile.none()
    return NodeAttributeProfile.structural(), EdgeAttributeProfile.structural()


def _build(report_dir, mode, message_id, preset, derive, output, out_dir):
    node_profile, edge_profile = _profiles(mode, preset)
    assembler = OverlayAssembler(node_profile, edge_profile, derive_edges=derive)

    click.echo(f"Building {mode.value} overlay from {report_dir}...")
    try:
        graph = assembler.build(ReportLoader(report_dir), mode=mode, message_id=message_id)
    except (ValueError, DataConsistencyError) as e:
        raise click.ClickException(str(e))

    click.echo(f"  Nodes: {len(graph.nodes)}")
    click.echo(f"  Edges: {len(graph.edges)}")
    click.echo(f"  Boundary: {graph.last_boundary}")

    path = output or default_output_path(out_dir, graph.name, message_id)
    GexfExporter.write(graph, path)
    click.echo(f"  Saved to {path}")
    return graph


@click.group()
@click.version_option(version="0.1.0", prog_name="overlaygraph")
@click.option("--log-level", default=None,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Override LOG_LEVEL")
def cli(log_level):
    """overlaygraph: Temporal overlay reconstruction for pub/sub simulations."""
    if log_level:
        set_level(log_level)


@cli.command()
@click.argument("report_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--output", "-o", default=None, help="Output GEXF file")
@click.option("--out-dir", default="reports", show_default=True, help="Directory for generated file names")
@click.option("--profile", "-p", type=click.Choice(["default", "minimal", "all"]), default="default")
@click.option("--derive/--explicit", default=True, show_default=True,
              help="Derive edges from neighbor lists or use reported edges")
def structural(report_dir, output, out_dir, profile, derive):
    """Build a structural overlay from a directory of merged reports."""
    _build(report_dir, OverlayMode.STRUCTURAL, None, profile, derive, output, out_dir)
    click.echo("Done.")


@cli.command()
@click.argument("report_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("message_id")
@click.option("--output", "-o", default=None, help="Output GEXF file")
@click.option("--out-dir", default="reports", show_default=True, help="Directory for generated file names")
@click.option("--profile", "-p", type=click.Choice(["default", "minimal", "all"]), default="default")
def dissemination(report_dir, message_id, output, out_dir, profile):
    """Build a dissemination overlay tracing MESSAGE_ID."""
    _build(report_dir, OverlayMode.DISSEMINATION, message_id, profile, True, output, out_dir)
    click.echo("Done.")


@cli.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False))
@click.argument("protocol")
def merge(root, protocol):
    """Merge collected fragments of PROTOCOL under ROOT into per-interval reports."""
    from .ingest.collector import merge_fragments

    try:
        paths = merge_fragments(root, protocol)
    except ReportError as e:
        raise click.ClickException(str(e))
    click.echo(f"Merged {len(paths)} checkpoints for {protocol}")


@cli.command()
@click.argument("report_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output JSON lines")
def stats(report_dir, as_json):
    """Print hit ratio and path lengths for every interval, then overlay churn."""
    try:
        reports = list(ReportLoader(report_dir))
    except ReportError as e:
        raise click.ClickException(str(e))

    for report in reports:
        summary = interval_summary(report)
        if as_json:
            click.echo(json.dumps(summary))
        else:
            click.echo(
                f"  [{summary['interval']:>4}] nodes={summary['nodes']:<5} "
                f"pubs={summary['publications']:<4} "
                f"hit_ratio={summary['hit_ratio']:.3f} "
                f"max_path={summary['max_path_length']} "
                f"avg_path={summary['average_path_length']:.2f}"
            )

    if not as_json:
        evolution = OverlayAssembler().build(reports).evolution_stats()
        click.echo(f"\nOverlay evolution over {evolution['intervals']} intervals:")
        for key, value in evolution.items():
            if key != "intervals":
                click.echo(f"  {key}: {value}")


@cli.command()
@click.option("--root", default="reports", show_default=True, help="Collector storage root")
@click.option("--host", default="0.0.0.0", help="Bind host")
@click.option("--port", default=5000, help="Bind port")
@click.option("--queue-size", default=64, show_default=True, help="Bounded fragment queue size")
def serve(root, host, port, queue_size):
    """Start the HTTP report collector."""
    from .api.routes import CollectorAPI

    api = CollectorAPI(root, maxsize=queue_size)
    app = api.create_app()
    click.echo(f"Collecting reports into {root} on http://{host}:{port}")
    with api.collector:
        app.run(host=host, port=port)


if __name__ == "__main__":
    cli()
