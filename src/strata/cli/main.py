"""
Command-line entry point for strata.

Builds a configuration from files and the environment and shows or
queries the merged result:

    strata -f appsettings.yaml -f .env -e MYAPP_ show
    strata -f appsettings.json get Database:Port --as int
"""

import datetime as _datetime
import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import click as _click

import strata
import strata.builder as builder
import strata.errors as errors
import strata.navigation as navigation
import strata.settings as settings_module

CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

# Names accepted by `get --as`
SHAPES: dict[str, _typing.Any] = {
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "timedelta": _datetime.timedelta,
    "list": list[str],
    "dict": dict[str, str],
}


def _add_file(config_builder: builder.ConfigurationBuilder, path: _pathlib.Path) -> None:
    suffix = path.suffix.lower()
    if suffix == ".json":
        config_builder.add_json_file(path, optional=False)
    elif suffix in (".yaml", ".yml"):
        config_builder.add_yaml_file(path, optional=False)
    elif path.name.startswith(".env") or suffix == ".env":
        config_builder.add_dotenv(path, optional=False)
    else:
        raise _click.BadParameter(f"Unsupported file type: {path}", param_hint="--file")


def _configure_logging(level: str) -> None:
    _logging.basicConfig(
        level=getattr(_logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=_sys.stderr,
    )


def _should_use_color(cli_flag: bool | None) -> bool:
    """CLI flag first, then NO_COLOR, then TTY detection."""
    if cli_flag is not None:
        return cli_flag
    if _os.environ.get("NO_COLOR") is not None:
        return False
    return _sys.stdout.isatty()


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(strata.__version__, "-V", "--version", prog_name="strata")
@_click.option(
    "-f",
    "--file",
    "files",
    multiple=True,
    type=_click.Path(exists=True, dir_okay=False, path_type=_pathlib.Path),
    help="Config file (.json, .yaml/.yml, .env). Repeat; later files win.",
)
@_click.option("-e", "--env-prefix", default=None, help="Also read environment variables with this prefix.")
@_click.option("--env/--no-env", "use_env", default=False, help="Read all environment variables (last).")
@_click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level.")
@_click.pass_context
def cli(
    ctx: _click.Context,
    files: tuple[_pathlib.Path, ...],
    env_prefix: str | None,
    use_env: bool,
    verbose: bool,
) -> None:
    """Inspect layered configuration.

    Sources are applied in the order given: files first, then the
    environment. Later sources override earlier ones.
    """
    engine_settings = settings_module.Settings()
    _configure_logging("DEBUG" if verbose else engine_settings.log_level)

    config_builder = builder.ConfigurationBuilder(engine_settings)
    for path in files:
        _add_file(config_builder, path)
    if env_prefix is not None or use_env:
        config_builder.add_environment(prefix=env_prefix)

    try:
        config = config_builder.build()
    except errors.BuildError as e:
        raise _click.ClickException(str(e)) from e

    ctx.obj = {"config": config}
    root = config.root
    if root is not None:
        ctx.call_on_close(root.close)


def _provenance(config: navigation.ConfigNode) -> dict[str, str]:
    """Map each merged key (case-folded) to the name of the source that set it."""
    root = config.root
    origin: dict[str, str] = {}
    if root is None:
        return origin
    for source in root.sources:
        for key in root.snapshot_of(source):
            origin[key.casefold()] = source.name
    return origin


@cli.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@_click.option("--section", default=None, help="Show only keys under this section.")
@_click.option("--provenance", is_flag=True, help="Show which source each value came from.")
@_click.option(
    "--color/--no-color",
    "use_color",
    default=None,
    help="Enable/disable colored output (default: auto-detect TTY).",
)
@_click.pass_context
def show(
    ctx: _click.Context,
    as_json: bool,
    section: str | None,
    provenance: bool,
    use_color: bool | None,
) -> None:
    """Show the merged configuration.

    Examples:
        strata -f app.yaml show
        strata -f app.yaml show --section Database --provenance
        strata -f app.yaml show --json
    """
    config: navigation.ConfigNode = ctx.obj["config"]
    node = config.section(section) if section else config
    if not node.found:
        raise _click.ClickException(f"Unknown section: {section}")
    entries = node.as_dict()

    if as_json:
        _click.echo(_json.dumps(entries, indent=2))
        return

    origin = _provenance(config) if provenance else {}
    color = _should_use_color(use_color)

    import rich.console as _rich_console
    import rich.table as _rich_table

    console = _rich_console.Console(
        force_terminal=color if use_color is not None else None,
        no_color=not color,
    )
    table = _rich_table.Table(show_header=True, header_style="bold")
    table.add_column("Key")
    table.add_column("Value")
    if provenance:
        table.add_column("Source", style="dim")
    for key, value in entries.items():
        shown = "[dim]<null>[/dim]" if value is None else _rich_escape(value)
        row = [_rich_escape(key), shown]
        if provenance:
            row.append(_rich_escape(origin.get(key.casefold(), "")))
        table.add_row(*row)
    console.print(table)


def _rich_escape(text: str) -> str:
    import rich.markup as _rich_markup

    return _rich_markup.escape(text)


@cli.command(name="get")
@_click.argument("key")
@_click.option(
    "--as",
    "shape_name",
    type=_click.Choice(sorted(SHAPES)),
    default="str",
    show_default=True,
    help="Convert the value before printing.",
)
@_click.option("--required", is_flag=True, help="Fail if the key has no value.")
@_click.pass_context
def get(ctx: _click.Context, key: str, shape_name: str, required: bool) -> None:
    """Print one value, converted with --as.

    Lists and dicts are printed as JSON.

    Examples:
        strata -f app.yaml get Server:Port --as int
        strata -f app.yaml get Servers --as list
    """
    config: navigation.ConfigNode = ctx.obj["config"]
    node = config.section(key)
    if not node.found and not required:
        raise _click.ClickException(f"Key not found: {key}")
    try:
        value = node.to(SHAPES[shape_name], required=required)
    except errors.FormatError as e:
        raise _click.ClickException(str(e)) from e

    if value is None:
        _click.echo("")
    elif isinstance(value, (list, dict)):
        _click.echo(_json.dumps(value, indent=2))
    elif isinstance(value, bool):
        _click.echo("true" if value else "false")
    else:
        _click.echo(str(value))


@cli.command(name="sources")
@_click.pass_context
def list_sources(ctx: _click.Context) -> None:
    """List sources in precedence order (last wins) with their key counts."""
    config: navigation.ConfigNode = ctx.obj["config"]
    root = config.root
    if root is None:
        return
    for index, source in enumerate(root.sources, start=1):
        flags = " (optional)" if source.optional else ""
        count = len(root.snapshot_of(source))
        _click.echo(f"{index}. {source.name}{flags}: {count} key(s)")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
