"""Command-line interface for tagcalc."""

from __future__ import annotations

import json
import math
from pathlib import Path

import click

from tagcalc import __core_api_version__, __version__


@click.group()
@click.version_option(
    version=f"{__version__} (core_api={__core_api_version__})",
    prog_name="tagcalc",
)
def main() -> None:
    """tagcalc -- evaluate formulas that reference named variables."""


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_tags(items: tuple[str, ...], project_dir: Path) -> dict[str, float]:
    """Parse ``NAME=VALUE`` options; a bare ``NAME`` is looked up in the catalog."""
    variables: dict[str, float] = {}
    catalog = None
    for item in items:
        if "=" in item:
            name, raw = item.split("=", 1)
            try:
                value = float(raw)
            except ValueError:
                raise click.ClickException(f"Invalid value for {name!r}: {raw!r}")
            if not math.isfinite(value):
                raise click.ClickException(f"Invalid value for {name!r}: {raw!r}")
            variables[name] = value
            continue
        if catalog is None:
            from tagcalc.suggestions import load_catalog

            catalog = load_catalog(project_dir)
        match = next((s for s in catalog if s.name == item), None)
        if match is None:
            raise click.ClickException(f"Unknown variable {item!r}. Use NAME=VALUE.")
        variables[match.name] = match.value
    return variables


def _build_buffer(formula: str, tags: tuple[str, ...], project_dir: Path):
    from tagcalc.buffer import FormulaBuffer

    return FormulaBuffer.from_formula(formula, _parse_tags(tags, project_dir))


_project_option = click.option(
    "--project",
    "project",
    default=".",
    type=click.Path(file_okay=False),
    help="Project directory holding tagcalc.yaml.",
)


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("formula")
@click.option("--tag", "tags", multiple=True, help="Variable as NAME=VALUE, or NAME from the catalog.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@_project_option
def eval_cmd(formula: str, tags: tuple[str, ...], as_json: bool, project: str) -> None:
    """Evaluate FORMULA, substituting the given variables."""
    from tagcalc.formulas import calculate

    buffer = _build_buffer(formula, tags, Path(project))
    result = calculate(buffer.text, buffer.tags)

    if as_json:
        click.echo(json.dumps(result.model_dump(), indent=2))
    else:
        click.echo(result.display())
    if not result.ok:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------


@main.command()
@click.argument("formula")
@click.option("--tag", "tags", multiple=True, help="Variable as NAME=VALUE, or NAME from the catalog.")
@_project_option
def render(formula: str, tags: tuple[str, ...], project: str) -> None:
    """Show how FORMULA splits into text runs and tags."""
    from tagcalc.models import TagSegment

    buffer = _build_buffer(formula, tags, Path(project))
    for segment in buffer.ordered_render():
        if isinstance(segment, TagSegment):
            tag = segment.tag
            click.echo(f"{tag.position:>4}  tag   {tag.name} = {tag.value:g}")
        else:
            click.echo(f"{segment.start:>4}  text  {segment.text!r}")


# ---------------------------------------------------------------------------
# Suggest
# ---------------------------------------------------------------------------


@main.command()
@click.argument("term")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@_project_option
def suggest(term: str, as_json: bool, project: str) -> None:
    """List catalog variables whose name contains TERM."""
    from tagcalc.project import load_project_config
    from tagcalc.suggestions import load_catalog

    project_dir = Path(project)
    try:
        catalog = load_catalog(project_dir)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))
    limit = int(load_project_config(project_dir).get("suggestion_limit", 10))
    matches = catalog.search(term)[:limit]

    if as_json:
        click.echo(json.dumps([m.model_dump() for m in matches], indent=2))
        return
    if not matches:
        click.echo("No matches.")
        return
    for m in matches:
        click.echo(f"{m.id:>4}  {m.name:<28} {m.value:g}")


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


@main.command()
@_project_option
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]))
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--session", "session_id", default=None, help="Filter by session id.")
@click.option("--limit", default=50, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def logs(
    project: str,
    level: str | None,
    event_type: str | None,
    session_id: str | None,
    limit: int,
    as_json: bool,
) -> None:
    """Show recent events from the project's log, newest first."""
    from tagcalc.logging.sink import EventSink

    sink = EventSink(Path(project))
    events = sink.read_global(level=level, event_type=event_type, session_id=session_id, limit=limit)

    if as_json:
        click.echo(json.dumps(events, indent=2))
        return
    if not events:
        click.echo("No events.")
        return
    for e in events:
        code = f" [{e['error_code']}]" if e.get("error_code") else ""
        click.echo(f"{e.get('ts', '')}  {e.get('level', ''):<7} {e.get('event_type', '')}{code}  {e.get('message', '')}")


if __name__ == "__main__":
    main()
