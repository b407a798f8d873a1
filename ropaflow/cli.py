"""CLI entrypoint for ropaflow."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .config import CONFIG_FILENAME, DEFAULT_STORE_DIR, load_settings
from .export import FORMATS
from .layout import DIRECTIONS
from .models import NodeKind


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )


FLOW_FILE = click.Path(dir_okay=False, path_type=Path)
EXISTING_FLOW_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


@click.group()
@click.version_option(__version__, prog_name="ropaflow")
@click.option(
    "--store",
    "-s",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help=f"Snapshot store directory (defaults to ./{DEFAULT_STORE_DIR})",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help=f"Settings file (defaults to <store>/{CONFIG_FILENAME})",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, store: Path | None, config_path: Path | None, verbose: bool) -> None:
    """ropaflow - Data-flow diagrams for records of processing activities.

    Build flows node by node, lay them out, check them, keep named
    versions and export them as PNG, SVG or JSON.
    """
    _setup_logging(verbose)
    ctx.ensure_object(dict)

    store_dir = store or DEFAULT_STORE_DIR
    settings = load_settings(config_path or store_dir / CONFIG_FILENAME)
    if store is not None:
        settings.store_dir = store

    ctx.obj["settings"] = settings
    ctx.obj["store_dir"] = settings.store_dir


# =============================================================================
# Flow file editing
# =============================================================================


@cli.group()
def flow() -> None:
    """Create and edit flow files."""
    pass


@flow.command("init")
@click.argument("file", type=FLOW_FILE)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def flow_init(file: Path, force: bool) -> None:
    """Create an empty flow file."""
    from .commands.flow_cmd import run_init

    sys.exit(run_init(file, force=force))


@flow.command("add-node")
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.argument("kind", type=click.Choice([k.value for k in NodeKind]))
@click.option("--label", type=str, default=None, help="Node label (defaults to the kind's name)")
@click.option("--x", "x", type=float, default=0.0, show_default=True)
@click.option("--y", "y", type=float, default=0.0, show_default=True)
def flow_add_node(file: Path, kind: str, label: str | None, x: float, y: float) -> None:
    """Add a node and print its id."""
    from .commands.flow_cmd import run_add_node

    sys.exit(run_add_node(file, kind, label, x, y))


@flow.command("add-edge")
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.argument("source")
@click.argument("target")
def flow_add_edge(file: Path, source: str, target: str) -> None:
    """Connect SOURCE to TARGET and print the edge ref."""
    from .commands.flow_cmd import run_add_edge

    sys.exit(run_add_edge(file, source, target))


@flow.command("remove-node")
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.argument("node_id")
def flow_remove_node(file: Path, node_id: str) -> None:
    """Remove a node, its edges and its metadata."""
    from .commands.flow_cmd import run_remove_node

    sys.exit(run_remove_node(file, node_id))


@flow.command("remove-edge")
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.argument("ref")
def flow_remove_edge(file: Path, ref: str) -> None:
    """Remove one edge."""
    from .commands.flow_cmd import run_remove_edge

    sys.exit(run_remove_edge(file, ref))


@flow.command("set")
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.argument("node_id")
@click.argument("field_name", metavar="FIELD")
@click.argument("value")
def flow_set(file: Path, node_id: str, field_name: str, value: str) -> None:
    """Set a metadata FIELD on a node.

    FIELD accepts the stored name (legalBasis) or the attribute name
    (legal_basis). Setting label or kind also updates the node.

    Examples:

        ropaflow flow set flow.json n_1700000000000_42 legalBasis Consent
    """
    from .commands.flow_cmd import run_set

    sys.exit(run_set(file, node_id, field_name, value))


@flow.command("show")
@click.argument("file", type=EXISTING_FLOW_FILE)
def flow_show(file: Path) -> None:
    """Print the nodes and edges of a flow."""
    from .commands.flow_cmd import run_show

    sys.exit(run_show(file))


# =============================================================================
# Engines
# =============================================================================


@cli.command()
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.option(
    "--direction",
    type=click.Choice(DIRECTIONS, case_sensitive=False),
    default="LR",
    show_default=True,
    help="Rank axis: left-to-right or top-to-bottom",
)
@click.option(
    "--out",
    type=FLOW_FILE,
    default=None,
    help="Write the laid-out flow here instead of in place",
)
@click.pass_context
def layout(ctx: click.Context, file: Path, direction: str, out: Path | None) -> None:
    """Auto-arrange a flow in layers."""
    from .commands.layout_cmd import run_layout

    sys.exit(run_layout(file, direction=direction, out=out, settings=ctx.obj["settings"]))


@cli.command()
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.option("--json", "output_json", is_flag=True, help="Output issues as JSON")
def validate(file: Path, output_json: bool) -> None:
    """Report missing labels, isolated nodes and dangling edges."""
    from .commands.validate_cmd import run_validate

    sys.exit(run_validate(file, output_json=output_json))


@cli.command()
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(FORMATS),
    default="png",
    show_default=True,
    help="Output format",
)
@click.option("--name", type=str, default=None, help="Flow name used for the title and file name")
@click.option(
    "--out-dir",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=Path("."),
    help="Directory to write the export into",
)
@click.pass_context
def export(ctx: click.Context, file: Path, fmt: str, name: str | None, out_dir: Path) -> None:
    """Render a flow to an image or JSON file."""
    from .commands.export_cmd import run_export

    sys.exit(run_export(file, fmt=fmt, name=name, out_dir=out_dir, settings=ctx.obj["settings"]))


# =============================================================================
# Snapshot store
# =============================================================================


@cli.group()
def snapshot() -> None:
    """Save and restore named flow versions.

    Entries are addressed by index; index 0 is the most recently created.
    """
    pass


@snapshot.command("save")
@click.argument("name")
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.pass_context
def snapshot_save(ctx: click.Context, name: str, file: Path) -> None:
    """Save FILE as a new entry named NAME."""
    from .commands.snapshot_cmd import run_save

    sys.exit(run_save(ctx.obj["settings"], name, file))


@snapshot.command("update")
@click.argument("index", type=int)
@click.argument("file", type=EXISTING_FLOW_FILE)
@click.pass_context
def snapshot_update(ctx: click.Context, index: int, file: Path) -> None:
    """Append FILE as a new version of entry INDEX."""
    from .commands.snapshot_cmd import run_update

    sys.exit(run_update(ctx.obj["settings"], index, file))


@snapshot.command("list")
@click.option("--archived", is_flag=True, help="List archived entries instead")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def snapshot_list(ctx: click.Context, archived: bool, output_json: bool) -> None:
    """List stored flows."""
    from .commands.snapshot_cmd import run_list

    sys.exit(run_list(ctx.obj["settings"], archived=archived, output_json=output_json))


@snapshot.command("load")
@click.argument("index", type=int)
@click.option("--out", type=FLOW_FILE, default=None, help="Write the flow here instead of stdout")
@click.pass_context
def snapshot_load(ctx: click.Context, index: int, out: Path | None) -> None:
    """Restore the latest version of entry INDEX."""
    from .commands.snapshot_cmd import run_load

    sys.exit(run_load(ctx.obj["settings"], index, out))


@snapshot.command("archive")
@click.argument("index", type=int)
@click.option("--undo", is_flag=True, help="Move the entry back to the active list")
@click.pass_context
def snapshot_archive(ctx: click.Context, index: int, undo: bool) -> None:
    """Archive entry INDEX."""
    from .commands.snapshot_cmd import run_archive

    sys.exit(run_archive(ctx.obj["settings"], index, archived=not undo))


@snapshot.command("delete")
@click.argument("index", type=int)
@click.pass_context
def snapshot_delete(ctx: click.Context, index: int) -> None:
    """Delete entry INDEX and all of its versions."""
    from .commands.snapshot_cmd import run_delete

    sys.exit(run_delete(ctx.obj["settings"], index))


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
