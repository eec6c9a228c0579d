#!/usr/bin/env python3
"""
govcore CLI

Command-line helpers around the evaluation core, handy when writing or
debugging community rules.

Usage:
    govcore phase [--kind KIND] [--duration NAME=SECONDS ...] [--confirmed-at TS] [--now TS]
    govcore coin-types <rule_file> [--type TYPE]
    govcore check <rule_file> [--type TYPE]
    govcore ballot toggle --type TYPE <value> <option>
    govcore ballot power --type TYPE <value> <power>
"""

import json
import time
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Tuple

import click

from govcore import __version__
from govcore.config import GovernanceConfig, load_config
from govcore.exceptions import GovernanceError
from govcore.functions import default_registry, required_coin_types
from govcore.functions.expressions import parse_boolean_expression, parse_decimal_expression
from govcore.governance.choices import BallotType, power_by_option, toggle
from govcore.governance.phases import (
    PhaseSchedule,
    current_phase,
    format_duration,
    phase_windows,
)
from govcore.logger import set_log_level


def _load_rule(rule_file: str, value_type: str, config: GovernanceConfig):
    """Parse a JSON rule file into an expression tree."""
    try:
        data = json.loads(Path(rule_file).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{rule_file} is not valid JSON: {e}")
    registry = default_registry()
    try:
        if value_type == "boolean":
            return parse_boolean_expression(data, registry, strict_not=config.engine.strict_not)
        return parse_decimal_expression(data, registry)
    except GovernanceError as e:
        raise click.ClickException(str(e))


def _parse_durations(pairs: Tuple[str, ...]):
    durations = []
    for pair in pairs:
        name, sep, seconds = pair.partition("=")
        if not sep or not seconds.strip().isdigit():
            raise click.BadParameter(f"expected NAME=SECONDS, got {pair!r}", param_hint="--duration")
        durations.append((name.strip(), int(seconds)))
    return durations


@click.group()
@click.version_option(version=__version__, prog_name="govcore")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to govcore.toml (defaults to $GOVCORE_CONFIG or ./govcore.toml)")
@click.pass_context
def cli(ctx, config_path: Optional[str]):
    """govcore - permission, voting-power and phase evaluation."""
    try:
        config = load_config(config_path)
        config.validate()
    except (ValueError, GovernanceError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")
    set_log_level(config.logging.level)
    ctx.obj = config


@cli.command()
@click.option("--kind", type=click.Choice(["grant", "proposal"]), default="grant",
              help="Process kind; selects the configured default durations")
@click.option("--duration", "durations", multiple=True, metavar="NAME=SECONDS",
              help="Explicit ordered phase durations (overrides --kind defaults)")
@click.option("--confirmed-at", type=float, default=None,
              help="Confirmation timestamp; omit while unconfirmed")
@click.option("--now", type=float, default=None, help="Evaluation time (default: current time)")
@click.option("--as-json", is_flag=True, help="Print machine readable output")
@click.pass_obj
def phase(config: GovernanceConfig, kind, durations, confirmed_at, now, as_json):
    """Show the current phase of a process."""
    try:
        if durations:
            schedule = PhaseSchedule.from_pairs(_parse_durations(durations))
        elif kind == "grant":
            schedule = config.phases.grant_schedule()
        else:
            schedule = config.phases.proposal_schedule()
    except GovernanceError as e:
        raise click.ClickException(str(e))

    now = time.time() if now is None else now
    name = current_phase(now, confirmed_at, schedule)
    windows = phase_windows(confirmed_at, schedule) if confirmed_at is not None else []

    if as_json:
        click.echo(json.dumps({
            "phase": name,
            "windows": [w.to_dict() for w in windows],
        }))
        return

    click.echo(f"Phase: {click.style(name, fg='cyan', bold=True)}")
    for window in windows:
        marker = click.style("→", fg="yellow") if window.name == name else " "
        click.echo(
            f"  {marker} {window.name:<12} {window.start:>14.0f} - {window.end:<14.0f} "
            f"({format_duration(window.length)})"
        )


def _type_option():
    return click.option("--type", "value_type", type=click.Choice(["boolean", "decimal"]),
                        default="boolean", help="Expression family of the rule")


@cli.command("coin-types")
@click.argument("rule_file", type=click.Path(exists=True, dir_okay=False))
@_type_option()
@click.pass_obj
def coin_types(config: GovernanceConfig, rule_file, value_type):
    """List the snapshot coin types a rule needs."""
    expr = _load_rule(rule_file, value_type, config)
    click.echo(json.dumps(sorted(required_coin_types(expr))))


@cli.command()
@click.argument("rule_file", type=click.Path(exists=True, dir_okay=False))
@_type_option()
@click.pass_obj
def check(config: GovernanceConfig, rule_file, value_type):
    """Validate a rule file and print it back in canonical form."""
    expr = _load_rule(rule_file, value_type, config)
    click.echo(json.dumps(expr.to_dict(), indent=2))
    click.echo(click.style("✓ Rule is valid", fg="green"), err=True)


@cli.group()
def ballot():
    """Ballot encoding helpers."""


@ballot.command("toggle")
@click.option("--type", "ballot_type", type=click.Choice([t.value for t in BallotType]), required=True)
@click.argument("value")
@click.argument("option")
def ballot_toggle(ballot_type, value, option):
    """Select or deselect OPTION in an encoded choice VALUE."""
    try:
        click.echo(toggle(BallotType(ballot_type), value, option))
    except GovernanceError as e:
        raise click.ClickException(str(e))


@ballot.command("power")
@click.option("--type", "ballot_type", type=click.Choice([t.value for t in BallotType]), required=True)
@click.argument("value")
@click.argument("power")
def ballot_power(ballot_type, value, power):
    """Show the power each selected option receives."""
    try:
        total = Decimal(power)
    except InvalidOperation:
        raise click.BadParameter(f"not a number: {power!r}", param_hint="POWER")
    try:
        powers = power_by_option(BallotType(ballot_type), value, total)
    except GovernanceError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps({option: str(p) for option, p in sorted(powers.items())}))


def main():
    cli()


if __name__ == "__main__":
    main()
