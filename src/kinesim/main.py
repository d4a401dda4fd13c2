"""CLI entry point for kinesim.

Two commands are provided for working with fake-controller files outside
a running simulator:

- ``kinesim check CONTROLLERS --model MODEL`` compiles the controllers and
  lists what each joint channel is bound to.
- ``kinesim eval CONTROLLERS --model MODEL --state STATE`` additionally
  evaluates every expression once against the given joint state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click
import yaml
from dotenv import load_dotenv

from kinesim import __version__
from kinesim.cli.output import (
    ExitCode,
    channel_values_to_dict,
    format_channel_values,
    format_error,
    format_json,
    format_success,
)
from kinesim.config import KinesimConfig, load_config
from kinesim.dsl import (
    ExpressionCompileError,
    FakeControllers,
    compile_controllers,
    load_controller_file,
)
from kinesim.exceptions import ConfigError, KinesimError
from kinesim.joints import JointModel, load_joint_model
from kinesim.logging import bind_context, configure_logging, level_for_verbosity
from kinesim.yaml_loader import load_document

load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)


@dataclass(frozen=True, slots=True)
class CLIContext:
    """State shared by all subcommands.

    Attributes:
        config: Configuration loaded from ``--config`` or the default sources.
    """

    config: KinesimConfig


def _log_level(config: KinesimConfig, verbosity: int, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return level_for_verbosity(config.verbosity)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="kinesim")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to config file (overrides project/user config).",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v for INFO, -vv for DEBUG).",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    default=False,
    help="Only log errors.",
)
@click.pass_context
def cli(
    ctx: click.Context, config_file: Path | None, verbose: int, quiet: bool
) -> None:
    """Compile and evaluate fake-controller expressions."""
    try:
        config = load_config(config_file)
    except ConfigError as e:
        details = [f"Field: {e.field}"] if e.field else None
        click.echo(format_error(e.message, details=details), err=True)
        ctx.exit(ExitCode.FAILURE)

    configure_logging(level=_log_level(config, verbose, quiet))
    ctx.obj = CLIContext(config=config)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _compile_from_files(
    cli_ctx: CLIContext, controllers_file: Path | None, model_file: Path | None
) -> tuple[JointModel, FakeControllers]:
    controllers_file = controllers_file or cli_ctx.config.controllers_file
    model_file = model_file or cli_ctx.config.model_file
    if controllers_file is None:
        raise click.UsageError(
            "No controller file given and 'controllers_file' is not configured"
        )
    if model_file is None:
        raise click.UsageError("No --model given and 'model_file' is not configured")

    bind_context(controllers_file=str(controllers_file))
    model = load_joint_model(model_file)
    document = load_controller_file(controllers_file)
    return model, compile_controllers(document, model)


def _fail(error: KinesimError) -> NoReturn:
    details: list[str] = []
    if isinstance(error, ExpressionCompileError):
        if error.entry is not None:
            details.append(f"Entry: {error.entry}")
        if error.joint is not None:
            details.append(f"Joint: {error.joint}")
        if error.channel is not None:
            details.append(f"Channel: {error.channel}")
    click.echo(format_error(error.message, details=details), err=True)
    raise SystemExit(ExitCode.FAILURE)


@cli.command()
@click.argument(
    "controllers_file",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-m",
    "--model",
    "model_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Joint model YAML file.",
)
@click.pass_obj
def check(
    cli_ctx: CLIContext, controllers_file: Path | None, model_file: Path | None
) -> None:
    """Compile a fake-controller file and list the bound expressions."""
    try:
        model, controllers = _compile_from_files(cli_ctx, controllers_file, model_file)
    except KinesimError as e:
        _fail(e)

    names = model.joint_names
    for channel, expressions in controllers.channels():
        for idx, expression in sorted(expressions.items()):
            click.echo(f"{channel:<8}  {names[idx]}  <- {expression}")
    click.echo(
        format_success(
            f"Compiled {len(controllers)} fake controllers "
            f"({len(controllers.graph)} expression nodes)"
        )
    )


@cli.command(name="eval")
@click.argument(
    "controllers_file",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-m",
    "--model",
    "model_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Joint model YAML file.",
)
@click.option(
    "-s",
    "--state",
    "state_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Joint state YAML file ({joint: {position, velocity, effort}}).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default=None,
    help="Output format (defaults to evaluation.output_format).",
)
@click.pass_obj
def evaluate(
    cli_ctx: CLIContext,
    controllers_file: Path | None,
    model_file: Path | None,
    state_file: Path | None,
    output_format: str | None,
) -> None:
    """Evaluate every fake controller once and print the values."""
    try:
        model, controllers = _compile_from_files(cli_ctx, controllers_file, model_file)
        if state_file is not None:
            try:
                with open(state_file) as f:
                    state_document = load_document(f)
            except yaml.YAMLError as e:
                raise ConfigError(
                    f"Invalid YAML in {state_file}: {e}", field="state"
                ) from e
            model.update_state(state_document or {})
    except KinesimError as e:
        _fail(e)

    values = controllers.evaluate()
    settings = cli_ctx.config.evaluation
    if (output_format or settings.output_format) == "json":
        click.echo(format_json(channel_values_to_dict(values, model.joint_names)))
    else:
        click.echo(
            format_channel_values(values, model.joint_names, settings.precision)
        )


if __name__ == "__main__":
    cli()
