"""
iacforge CLI entry point.
"""
import json
import os
import sys
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from iacforge import __version__
from iacforge.config import load_config
from iacforge.emitters import FILENAMES
from iacforge.errors import IaCForgeError, ValidationError
from iacforge.loader import load_document
from iacforge.mappings import load_mapping_tables
from iacforge.models.artifact import ConversionResult, GeneratedArtifact, GenerationWarning, IaCFormat, Provider
from iacforge.request import FORMAT_CHOICES, convert

console = Console(stderr=True)

_BANNER = r"""
  _                __
 (_) __ _  ___   / _| ___  _ __ __ _  ___
 | |/ _` |/ __| | |_ / _ \| '__/ _` |/ _ \
 | | (_| | (__  |  _| (_) | | | (_| |  __/
 |_|\__,_|\___| |_|  \___/|_|  \__, |\___|
                               |___/
"""

_FORMAT_COLORS = {
    "terraform": "magenta",
    "cloudformation": "yellow",
    "pulumi-python": "blue",
    "pulumi-typescript": "cyan",
}


def _print_banner(no_color: bool = False) -> None:
    c = Console(stderr=True, no_color=no_color)
    c.print(f"[bold cyan]{_BANNER}[/bold cyan]")
    c.print(f"  [dim]infrastructure description -> IaC[/dim]   [dim]v{__version__}[/dim]\n")


def _print_summary_table(artifacts: List[GeneratedArtifact], no_color: bool) -> None:
    tbl = Table(title="Generated Artifacts", show_header=True, header_style="bold")
    tbl.add_column("Format", width=20)
    tbl.add_column("File", width=14)
    tbl.add_column("Resources", justify="right", width=10)
    tbl.add_column("Lines", justify="right", width=7)

    for a in artifacts:
        color = _FORMAT_COLORS.get(a.format.value, "") if not no_color else ""
        tbl.add_row(
            f"[{color}]{a.format.value}[/{color}]" if color else a.format.value,
            a.filename,
            str(len(a.resources)),
            str(len(a.code.splitlines())),
        )

    Console(stderr=True, no_color=no_color).print(tbl)


def _print_warnings(warnings: List[GenerationWarning], no_color: bool) -> None:
    if not warnings:
        return
    tbl = Table(title="Warnings", show_header=True, header_style="bold yellow")
    tbl.add_column("Kind", width=18)
    tbl.add_column("Format", width=18)
    tbl.add_column("Resource", width=20)
    tbl.add_column("Message")
    for w in warnings:
        tbl.add_row(
            w.kind.value,
            w.format.value if w.format else "-",
            w.resource or "-",
            w.message[:100] + "…" if len(w.message) > 100 else w.message,
        )
    Console(stderr=True, no_color=no_color).print(tbl)


def _write_artifacts(artifacts: List[GeneratedArtifact], output_dir: str) -> List[str]:
    written = []
    for a in artifacts:
        target_dir = os.path.join(output_dir, a.format.value)
        os.makedirs(target_dir, exist_ok=True)
        path = os.path.join(target_dir, a.filename)
        with open(path, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(a.code)
        written.append(path)
    return written


def _render_stdout(result: ConversionResult) -> str:
    parts = []
    for a in result.artifacts:
        parts.append(f"# ---- {a.filename} ({a.format.value}) ----\n{a.code}")
    return "\n".join(parts)


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(__version__)
@click.pass_context
def cli(ctx):
    """iacforge — turn infrastructure descriptions into Terraform, CloudFormation and Pulumi."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit()


@cli.command()
@click.argument("document", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--provider", "-p",
    type=click.Choice([p.value for p in Provider], case_sensitive=False),
    default=None,
    help="Cloud provider (default: config file, then the document's provider tag).",
)
@click.option(
    "--format", "-f", "formats",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    multiple=True,
    help="Output format; repeat for several (default: config file, then terraform).",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(file_okay=False),
    default=None,
    help="Write each artifact to DIR/<format>/<filename> (default: stdout).",
)
@click.option(
    "--json", "as_json",
    is_flag=True,
    default=False,
    help="Print a JSON conversion response instead of raw code.",
)
@click.option(
    "--summary",
    is_flag=True,
    default=False,
    help="Print the terminal summary only, do not output code.",
)
@click.option(
    "--parallel/--sequential",
    default=None,
    help="Run emitters in parallel threads.",
)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML config file (default: ./iacforge.yaml if present).",
)
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable rich terminal color output.",
)
def generate(
    document: str,
    provider: Optional[str],
    formats: Tuple[str, ...],
    output_dir: Optional[str],
    as_json: bool,
    summary: bool,
    parallel: Optional[bool],
    config_path: Optional[str],
    no_color: bool,
) -> None:
    """
    Generate IaC artifacts from an infrastructure DOCUMENT (JSON or YAML).
    """
    _print_banner(no_color)
    stderr = Console(stderr=True, no_color=no_color)

    # 1. Configuration and input
    try:
        config = load_config(config_path)
        tables = load_mapping_tables(config.mappings)
        with stderr.status("[bold]Loading document…"):
            doc = load_document(document)
    except IaCForgeError as exc:
        stderr.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    requested = list(formats) or config.formats or [IaCFormat.TERRAFORM.value]
    provider = provider or config.provider
    use_parallel = config.parallel if parallel is None else parallel

    # 2. Build and emit
    try:
        with stderr.status(f"[bold]Generating {len(requested)} format(s)…"):
            result = convert(doc, requested, provider=provider, tables=tables, parallel=use_parallel)
    except ValidationError as exc:
        if as_json:
            click.echo(json.dumps({"success": False, "error": str(exc)}, indent=2))
        stderr.print(f"[red]Invalid infrastructure description:[/red] {exc}")
        sys.exit(1)
    except IaCForgeError as exc:
        stderr.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    stderr.print(
        f"Generated [bold]{len(result.artifacts)}[/bold] artifact(s) for "
        f"[bold]{result.provider.value}[/bold] with {len(result.warnings)} warning(s)."
    )
    _print_summary_table(result.artifacts, no_color)
    _print_warnings(result.warnings, no_color)

    # 3. Output
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif output_dir:
        for path in _write_artifacts(result.artifacts, output_dir):
            stderr.print(f"Wrote [bold]{path}[/bold]")
    elif not summary:
        click.echo(_render_stdout(result), nl=False)

    sys.exit(0 if result.artifacts else 2)


@cli.command()
def formats() -> None:
    """List output formats, their filenames and supported providers."""
    tbl = Table(show_header=True, header_style="bold")
    tbl.add_column("Format")
    tbl.add_column("File")
    tbl.add_column("Providers")
    for fmt in IaCFormat:
        providers = ["aws"] if fmt is IaCFormat.CLOUDFORMATION else [p.value for p in Provider]
        tbl.add_row(fmt.value, FILENAMES[fmt], ", ".join(providers))
    Console().print(tbl)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
