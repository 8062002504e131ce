"""
Command-line interface for schema_lineage.

Provides commands to manage encrypted secrets, probe connections, discover
catalog metadata and project it into lineage graph JSON.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from schema_lineage import __version__
from schema_lineage.config import ServiceConfig, load_config, load_descriptor, split_option
from schema_lineage.errors import SchemaLineageError
from schema_lineage.graph import GraphProjector
from schema_lineage.models import DiscoveryResult, DiscoveryStatistics, GraphStatistics
from schema_lineage.vault import generate_key

# Status output goes to stderr so JSON on stdout stays machine-readable
console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _fail(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def _write_json(data: Dict[str, Any], output: Optional[Path]) -> None:
    text = json.dumps(data, indent=2, default=str)
    if output:
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w") as f:
            f.write(text)
        console.print(f"[green]Saved to: {output}[/green]")
    else:
        click.echo(text)


def _vault_if_configured(config: ServiceConfig):
    return config.vault() if config.encryption_key else None


@click.group()
@click.version_option(version=__version__, prog_name="schema-lineage")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML service configuration file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[Path]) -> None:
    """
    Schema Lineage - Oracle catalog discovery and lineage graphs

    Discover tables, columns, procedures and constraints from an Oracle
    database and turn them into a node/edge graph.
    """
    setup_logging(verbose)
    try:
        ctx.obj = load_config(config_path)
    except SchemaLineageError as e:
        _fail(str(e))


@cli.command("generate-key")
def generate_key_command() -> None:
    """Print a fresh random 256-bit key (base64) for key rotation."""
    click.echo(generate_key())


@cli.command()
@click.argument("value")
@click.pass_obj
def encrypt(config: ServiceConfig, value: str) -> None:
    """
    Encrypt a secret for storage in a connection profile.

    Example:

        SCHEMA_LINEAGE_ENCRYPTION_KEY=... schema-lineage encrypt 'tiger'
    """
    try:
        token = config.vault().encrypt(value)
    except SchemaLineageError as e:
        _fail(str(e))
        return
    if token is None:
        _fail("Nothing to encrypt: value is empty")
    click.echo(token)


@cli.command()
@click.argument("token")
@click.pass_obj
def decrypt(config: ServiceConfig, token: str) -> None:
    """Decrypt a token produced by `encrypt`."""
    try:
        plaintext = config.vault().decrypt(token)
    except SchemaLineageError as e:
        _fail(str(e))
        return
    if plaintext is None:
        _fail("Nothing to decrypt: token is empty")
    click.echo(plaintext)


@cli.command("test-connection")
@click.argument("profile", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def test_connection_command(config: ServiceConfig, profile: Path) -> None:
    """
    Check that a connection profile can connect.

    Exits with status 0 when the connection works and 1 otherwise.
    """
    from schema_lineage.connection import ConnectionFactory

    try:
        descriptor = load_descriptor(profile, vault=_vault_if_configured(config), config=config)
    except SchemaLineageError as e:
        _fail(str(e))
        return

    factory = ConnectionFactory(oracle_client_lib_dir=config.oracle_client_lib_dir)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task(f"Connecting to {descriptor.host}:{descriptor.port}...", total=None)
        ok = factory.test_connection(descriptor)
        progress.update(task, completed=True)

    if ok:
        console.print(f"[green]Connection {descriptor.connection_id} OK[/green]")
    else:
        _fail(f"Connection {descriptor.connection_id} failed")


@cli.command()
@click.argument("profile", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--schemas", type=str, default=None, help="Comma-separated owner allow-list")
@click.option("--table_patterns", type=str, default=None, help="Comma-separated LIKE patterns for table names")
@click.option("--object_types", type=str, default=None, help="Comma-separated routine types (PROCEDURE, FUNCTION, PACKAGE)")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Max rows per category")
@click.option("--offset", type=click.IntRange(min=0), default=None, help="Rows to skip per category")
@click.option("--tables/--no-tables", default=True, help="Discover tables")
@click.option("--columns/--no-columns", default=True, help="Discover columns")
@click.option("--procedures/--no-procedures", default=True, help="Discover procedures")
@click.option("--constraints/--no-constraints", default=True, help="Discover constraints")
@click.option(
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Write discovery JSON here instead of stdout",
)
@click.option(
    "--graph_output",
    type=click.Path(path_type=Path),
    default=None,
    help="Also write the projected graph JSON here",
)
@click.pass_obj
def discover(
    config: ServiceConfig,
    profile: Path,
    schemas: Optional[str],
    table_patterns: Optional[str],
    object_types: Optional[str],
    limit: Optional[int],
    offset: Optional[int],
    tables: bool,
    columns: bool,
    procedures: bool,
    constraints: bool,
    output: Optional[Path],
    graph_output: Optional[Path],
) -> None:
    """
    Discover catalog metadata for a connection profile.

    Examples:

        # Everything in HR, first page
        schema-lineage discover profiles/hr.yaml --schemas HR

        # Only EMP* tables and their columns, saved with the graph
        schema-lineage discover profiles/hr.yaml --schemas HR \\
            --table_patterns 'EMP%' --no-procedures --no-constraints \\
            --output hr.json --graph_output hr_graph.json
    """
    from schema_lineage.connection import ConnectionFactory
    from schema_lineage.metadata import OracleMetadataExtractor

    try:
        descriptor = load_descriptor(profile, vault=_vault_if_configured(config), config=config)
        request = config.discovery_request(
            connection_id=descriptor.connection_id,
            limit=limit,
            offset=offset,
            schemas=split_option(schemas),
            table_patterns=split_option(table_patterns),
            object_types=split_option(object_types),
            include_tables=tables,
            include_columns=columns,
            include_procedures=procedures,
            include_constraints=constraints,
        )

        extractor = OracleMetadataExtractor(
            ConnectionFactory(oracle_client_lib_dir=config.oracle_client_lib_dir)
        )
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Discovering catalog metadata...", total=None)
            result = extractor.discover(descriptor, request)
            progress.update(task, completed=True)
    except SchemaLineageError as e:
        _fail(str(e))
        return

    _print_discovery_statistics(result.statistics)
    _write_json(result.to_dict(), output)

    if graph_output:
        graph = GraphProjector().project(result)
        _write_json(graph.to_dict(), graph_output)


@cli.command()
@click.argument("input_path", metavar="INPUT", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--table", "table_name", type=str, default=None, help="Project only this table")
@click.option("--owner", type=str, default=None, help="Owner of --table")
@click.option("--stats_only", is_flag=True, help="Emit only graph statistics")
@click.option(
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Write graph JSON here instead of stdout",
)
def graph(
    input_path: Path,
    table_name: Optional[str],
    owner: Optional[str],
    stats_only: bool,
    output: Optional[Path],
) -> None:
    """
    Project a saved discovery JSON file into a lineage graph.

    Example:

        schema-lineage graph hr.json --table EMPLOYEES --owner HR
    """
    if owner and not table_name:
        _fail("--owner requires --table")

    try:
        with open(input_path, "r") as f:
            result = DiscoveryResult.from_dict(json.load(f))
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        _fail(f"Could not read discovery result {input_path}: {e}")
        return

    projector = GraphProjector()
    if table_name:
        graph_data = projector.project_table(result, table_name, owner)
        if not graph_data.nodes:
            console.print(f"[yellow]Table {table_name} not found in {input_path}[/yellow]")
    else:
        graph_data = projector.project(result)

    _print_graph_statistics(graph_data.statistics)
    if stats_only:
        _write_json(graph_data.statistics.to_dict(), output)
    else:
        _write_json(graph_data.to_dict(), output)


def _print_discovery_statistics(stats: Optional[DiscoveryStatistics]) -> None:
    if stats is None:
        return
    table = Table(title="Discovery Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Rows", style="green", justify="right")

    table.add_row("Tables", str(stats.total_tables))
    table.add_row("Columns", str(stats.total_columns))
    table.add_row("Procedures", str(stats.total_procedures))
    table.add_row("Constraints", str(stats.total_constraints))
    table.add_row("Elapsed (ms)", str(stats.discovery_time_ms))
    console.print(table)


def _print_graph_statistics(stats: GraphStatistics) -> None:
    table = Table(title=f"Graph: {stats.total_nodes} nodes, {stats.total_edges} edges")
    table.add_column("Kind", style="cyan")
    table.add_column("Type", style="yellow")
    table.add_column("Count", style="green", justify="right")

    for node_type, count in sorted(stats.node_type_breakdown.items()):
        table.add_row("node", node_type, str(count))
    for edge_type, count in sorted(stats.edge_type_breakdown.items()):
        table.add_row("edge", edge_type, str(count))
    console.print(table)


if __name__ == "__main__":
    cli()
