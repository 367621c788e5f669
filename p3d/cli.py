"""Command-line interface for p3d.

Usage:
    p3d process model.glb [options]
    p3d info model.obj
    p3d algorithms
    p3d init-config
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click
import numpy as np
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .core.config import AlgoType, AuxiliaryRotation, InputFileType, ProcessParams
from .core.errors import P3DError
from .mesh.alignment import align_mesh
from .mesh.loader import MeshLoader
from .mesh.slicer import MeshSlicer
from .pipeline import analyze
from .scoring.grid import list_scorers

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich output on stderr."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False)],
    )


def _parse_rotation(value: str | None) -> AuxiliaryRotation | None:
    """Parse ``AX,AY,AZ,ANGLE`` byte values."""
    if value is None:
        return None
    try:
        parts = [int(p) for p in value.split(",")]
        return AuxiliaryRotation.from_bytes(parts)
    except ValueError as e:
        raise click.BadParameter(f"expected four bytes 'AX,AY,AZ,ANGLE': {e}") from e


def _format_option(model_path: str, fmt: str | None) -> InputFileType:
    if fmt is not None:
        return InputFileType(fmt)
    try:
        return InputFileType.from_path(model_path)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--format") from e


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """p3d - Ranked anchor candidates from sliced meshes."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@main.command()
@click.argument("model_path", type=click.Path(exists=True))
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to parameters file",
)
@click.option(
    "--format", "-f", "fmt",
    type=click.Choice([f.value for f in InputFileType]),
    default=None,
    help="Input format (default: from file suffix)",
)
@click.option(
    "--algo", "-a",
    type=click.Choice([a.value for a in AlgoType]),
    default=None,
    help="Grid scoring variant",
)
@click.option("--grid-size", "-g", type=int, default=None, help="Grid subdivisions per axis")
@click.option("--sections", "-s", type=int, default=None, help="Number of slice levels")
@click.option("--depth", "-n", type=int, default=None, help="Number of candidates to return")
@click.option(
    "--rotate", "-r",
    type=str,
    default=None,
    help="Auxiliary rotation as four bytes 'AX,AY,AZ,ANGLE'",
)
@click.option("--plain", is_flag=True, help="Print result strings only")
@click.option("--json", "as_json", is_flag=True, help="Print candidates as JSON")
def process(
    model_path: str,
    config: str | None,
    fmt: str | None,
    algo: str | None,
    grid_size: int | None,
    sections: int | None,
    depth: int | None,
    rotate: str | None,
    plain: bool,
    as_json: bool,
) -> None:
    """Rank anchor candidates for a mesh.

    MODEL_PATH: Path to model file (OBJ/glTF/GLB)
    """
    params = ProcessParams.from_file(config) if config else ProcessParams.default()

    overrides: dict = {"file_type": _format_option(model_path, fmt)}
    if algo is not None:
        overrides["algorithm"] = AlgoType(algo)
    if grid_size is not None:
        overrides["grid_size"] = grid_size
    if sections is not None:
        overrides["n_sections"] = sections
    if depth is not None:
        overrides["depth"] = depth
    if rotate is not None:
        overrides["rotation"] = _parse_rotation(rotate)

    try:
        params = ProcessParams.model_validate({**params.model_dump(), **overrides})
    except ValueError as e:
        console.print(f"[red]Invalid parameters: {escape(str(e))}[/red]")
        raise click.Abort()

    try:
        result = analyze(Path(model_path).read_bytes(), params)
    except P3DError as e:
        console.print(f"[red]Error ({type(e).__name__}): {escape(str(e))}[/red]")
        raise click.Abort()

    if plain:
        for line in result.results:
            click.echo(line)
        return

    if as_json:
        click.echo(json.dumps(
            [
                {
                    "rank": i + 1,
                    "row": c.row,
                    "col": c.col,
                    "x": c.x,
                    "y": c.y,
                    "score": c.score,
                    "coverage": c.coverage,
                    "spread": c.spread,
                }
                for i, c in enumerate(result.candidates)
            ],
            indent=2,
        ))
        return

    console.print(
        f"\n[cyan]{params.algorithm.value}[/cyan]: grid {params.grid_size}x{params.grid_size}, "
        f"{params.n_sections} section(s), {len(result.contours)} non-empty contour(s)\n"
    )
    if params.rotation is not None:
        packed = ",".join(str(b) for b in params.rotation.to_bytes())
        console.print(f"Auxiliary rotation {packed}: {params.rotation.angle_deg:.3f} deg\n")

    table = Table(title="Candidates")
    table.add_column("#", style="dim")
    table.add_column("Cell", style="cyan")
    table.add_column("Position", style="green")
    table.add_column("Score", style="yellow")
    table.add_column("Coverage", style="magenta")
    table.add_column("Result", style="white")

    for i, (cand, line) in enumerate(zip(result.candidates, result.results)):
        table.add_row(
            str(i + 1),
            f"({cand.row}, {cand.col})",
            f"({cand.x:.3f}, {cand.y:.3f})",
            f"{cand.score:.4f}",
            f"{cand.coverage}/{len(result.contours)}",
            line,
        )
    console.print(table)

    if not result.candidates:
        console.print("[yellow]No grid cell is covered by any section[/yellow]")


@main.command()
@click.argument("model_path", type=click.Path(exists=True))
@click.option(
    "--format", "-f", "fmt",
    type=click.Choice([f.value for f in InputFileType]),
    default=None,
    help="Input format (default: from file suffix)",
)
@click.option("--sections", "-s", "sections_count", type=click.IntRange(min=1), default=10, help="Slice levels for section areas")
def info(model_path: str, fmt: str | None, sections_count: int) -> None:
    """Show information about a model before and after alignment.

    MODEL_PATH: Path to model file (OBJ/glTF/GLB)
    """
    path = Path(model_path)
    console.print(f"\n[bold]Model Info: {path.name}[/bold]\n")

    try:
        loader = MeshLoader.from_path(path, _format_option(model_path, fmt))
        stats = loader.stats()
        transform = align_mesh(loader.mesh)
    except P3DError as e:
        console.print(f"[red]Error loading: {escape(str(e))}[/red]")
        raise click.Abort()

    aligned_min, aligned_max = loader.bounds

    table = Table()
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Format", stats["format"])
    table.add_row("Vertices", f"{stats['num_vertices']:,}")
    table.add_row("Faces", f"{stats['num_faces']:,}")
    table.add_row("Watertight", "Yes" if stats["is_watertight"] else "No")
    table.add_row(
        "Bounds (min)",
        f"({stats['bounds_min'][0]:.2f}, {stats['bounds_min'][1]:.2f}, {stats['bounds_min'][2]:.2f})"
    )
    table.add_row(
        "Bounds (max)",
        f"({stats['bounds_max'][0]:.2f}, {stats['bounds_max'][1]:.2f}, {stats['bounds_max'][2]:.2f})"
    )
    table.add_row(
        "Principal components",
        ", ".join(f"{c:.4g}" for c in transform.components)
    )
    size = aligned_max - aligned_min
    table.add_row(
        "Aligned size",
        f"{size[0]:.2f} x {size[1]:.2f} x {size[2]:.2f}"
    )
    table.add_row("Centroid", str(np.round(-transform.translation, 4).tolist()))

    sections = MeshSlicer(loader.mesh).slice_sections(sections_count)
    if sections:
        areas = [c.area for c in sections]
        table.add_row(
            f"Section area ({len(sections)} of {sections_count})",
            f"min {min(areas):.3f}, max {max(areas):.3f}"
        )

    console.print(table)


@main.command()
def algorithms() -> None:
    """List available scoring algorithms."""
    console.print("\n[bold]Available Algorithms[/bold]\n")

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="white")

    for scorer in list_scorers():
        name = scorer["name"] if scorer["supported"] else f"[dim]{scorer['name']}[/dim]"
        table.add_row(name, scorer["description"])

    console.print(table)


@main.command()
@click.option(
    "--output", "-o",
    type=click.Path(),
    default="p3d_params.json",
    help="Output path for parameters file",
)
def init_config(output: str) -> None:
    """Generate a default parameters file."""
    params = ProcessParams.default()
    params.to_file(output)
    console.print(f"[green]Created parameters file: {output}[/green]")


if __name__ == "__main__":
    main()
