"""slugcmplr CLI.

Prepares a build root from an application checkout and compiles it into a
slug, mirroring what the platform build service does remotely.
"""

import asyncio
import logging
import sys
from pathlib import Path

import click

from .config import load_config
from .errors import SlugcmplrError
from .models import BuildpackReference
from .pipeline import CompileCmd
from .pipeline import PrepareCmd
from .storage import get_cache_dir

logger = logging.getLogger(__name__)

COMPILE_RESULT_FILE = "compile.json"


def parse_config_vars(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated KEY=VALUE options into a mapping.

    Raises:
        click.BadParameter: If a value has no `=` or an empty key
    """
    config_vars = {}
    for value in values:
        key, sep, var = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {value!r}", param_hint="--config-var")
        config_vars[key] = var
    return config_vars


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: slugcmplr.yaml in the config dir)",
)
@click.pass_context
def cli(ctx, config_path: Path | None):
    """slugcmplr - compile application slugs locally."""
    settings = load_config(config_path)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = settings


@cli.command()
@click.option("--source-dir", type=click.Path(file_okay=False, path_type=Path), default=Path("."), show_default=True)
@click.option("--build-dir", type=click.Path(file_okay=False, path_type=Path), required=True)
@click.option("--application", required=True, help="Target application name")
@click.option("--stack", required=True, help="Stack to compile for, e.g. heroku-22")
@click.option("--buildpack", "buildpacks", multiple=True, required=True, help="Buildpack URI, in execution order")
@click.option("--config-var", "config_vars", multiple=True, help="KEY=VALUE, repeatable")
@click.option("--source-version", default=None, help="Commit identifier (default: git HEAD of the source dir)")
@click.pass_obj
def prepare(
    settings,
    source_dir: Path,
    build_dir: Path,
    application: str,
    stack: str,
    buildpacks: tuple[str, ...],
    config_vars: tuple[str, ...],
    source_version: str | None,
):
    """Populate a build root with config vars, buildpacks and source."""
    try:
        cmd = PrepareCmd(
            source_dir=source_dir,
            build_dir=build_dir,
            config_vars=parse_config_vars(config_vars),
            buildpacks=[BuildpackReference(url=url) for url in buildpacks],
            application=application,
            stack=stack,
            source_version=source_version,
            settings=settings,
        )
        asyncio.run(cmd.execute(sys.stdout.buffer))
    except SlugcmplrError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--build-dir", type=click.Path(exists=True, file_okay=False, path_type=Path), required=True)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Buildpack cache directory (default: cache dir under SLUGCMPLR_HOME)",
)
@click.pass_obj
def compile(settings, build_dir: Path, cache_dir: Path | None):
    """Run buildpacks over a prepared build root and package the slug."""
    try:
        cmd = CompileCmd(build_dir=build_dir, cache_dir=cache_dir or get_cache_dir(), settings=settings)
        result = asyncio.run(cmd.execute(sys.stdout.buffer, sys.stderr.buffer))
    except (SlugcmplrError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    output = result.model_dump_json(indent=2)
    (build_dir / COMPILE_RESULT_FILE).write_text(output, encoding="utf-8")
    click.echo(output)


def main():
    """Entry point for slugcmplr CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nInterrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
