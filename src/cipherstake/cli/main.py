#!/usr/bin/env python3
"""
CipherStake CLI - local devnet tooling

Commands:
- config: show the configuration resolved from CIPHERSTAKE_* variables
- simulate: run delegations and votes through an in-process ledger with the
  reference Paillier engine and signing oracle, then decrypt the results
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.table import Table

from cipherstake.core.config import LedgerConfig
from cipherstake.core.exceptions import LedgerError
from cipherstake.core.logging_config import setup_logging
from cipherstake.fhe.paillier import PaillierEngine
from cipherstake.fhe.types import EUINT32
from cipherstake.governance.events import EventType
from cipherstake.governance.ledger import ConfidentialLedger
from cipherstake.governance.registry import identifier_for
from cipherstake.oracle.gateway import SigningDecryptionOracle

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _parse_delegation(raw: str) -> tuple[str, str, int]:
    """Parse ``delegator:delegatee:weight``."""
    parts = raw.split(":")
    if len(parts) != 3:
        raise click.BadParameter(f"expected delegator:delegatee:weight, got {raw!r}")
    try:
        weight = int(parts[2])
    except ValueError:
        raise click.BadParameter(f"weight must be an integer in {raw!r}") from None
    return parts[0], parts[1], weight


def run_simulation(
    ledger: ConfidentialLedger,
    engine: PaillierEngine,
    oracle: SigningDecryptionOracle,
    delegations: list[tuple[str, str, int]],
    votes: list[int],
) -> dict[str, Any]:
    """Drive a ledger through delegations and one proposal vote, then decrypt everything."""
    delegatees: dict[str, str] = {}
    for delegator, delegatee, weight in delegations:
        delegatee_id = identifier_for(delegatee)
        delegatees[delegatee] = delegatee_id
        ledger.submit_delegation(identifier_for(delegator), delegatee_id, engine.encrypt(weight, EUINT32))

    proposal_id = None
    if votes:
        proposal_id = ledger.create_proposal(b"devnet simulation proposal")
        for position, choice in enumerate(votes, start=1):
            ledger.submit_vote(identifier_for(f"voter-{position}"), proposal_id, engine.encrypt(choice, EUINT32))

    requests_by_label: dict[int, str] = {}
    for delegatee, delegatee_id in delegatees.items():
        requests_by_label[ledger.request_validator_weight_decryption(delegatee_id)] = delegatee
    if proposal_id is not None:
        requests_by_label[ledger.request_proposal_votes_decryption(proposal_id)] = f"proposal {proposal_id}"

    oracle.fulfill_pending()

    results = {}
    for event in ledger.events.events(EventType.DECRYPTION_COMPLETED):
        label = requests_by_label[event.payload["request_id"]]
        results[label] = event.payload["cleartexts"]
    return {"results": results, "stats": ledger.stats()}


@click.group()
@click.option("--log-level", default=None, help="Logging level (overrides CIPHERSTAKE_LOG_LEVEL)")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """CipherStake confidential governance ledger tools."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    setup_logging(name="cipherstake", level=log_level or "WARNING")


def _load_config(ctx: click.Context, **overrides: Any) -> LedgerConfig:
    """Resolve CIPHERSTAKE_* settings, apply command-line overrides and configure logging."""
    config = LedgerConfig.from_env(**overrides)
    setup_logging(
        name="cipherstake",
        level=ctx.obj.get("log_level") or config.log_level,
        log_file=config.log_file,
        environment=config.network.value,
    )
    return config


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the resolved ledger configuration."""
    try:
        config = _load_config(ctx)
    except LedgerError as exc:
        _handle_cli_error(exc)
        return
    data = asdict(config)
    data["network"] = config.network.value
    click.echo(json.dumps(data, indent=2))


@cli.command("simulate")
@click.option(
    "--delegate",
    "delegations",
    multiple=True,
    help="delegator:delegatee:weight (repeatable)",
)
@click.option("--votes", default="", help="Comma separated vote choices for one proposal, e.g. 1,0,1")
@click.option("--key-bits", default=None, type=int, help="Paillier modulus size (overrides CIPHERSTAKE_KEY_BITS)")
@click.option("--json-output", is_flag=True, help="Print results as JSON")
@click.pass_context
def simulate(
    ctx: click.Context, delegations: tuple[str, ...], votes: str, key_bits: int | None, json_output: bool
) -> None:
    """Run an in-process ledger and decrypt the resulting aggregates."""
    try:
        parsed = [_parse_delegation(raw) for raw in delegations]
        choices = [int(choice) for choice in votes.split(",") if choice.strip()]
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    try:
        config = _load_config(ctx, key_bits=key_bits)
        engine = PaillierEngine(key_bits=config.key_bits)
        oracle = SigningDecryptionOracle(engine)
        ledger = ConfidentialLedger(engine, oracle, config=config)
        outcome = run_simulation(ledger, engine, oracle, parsed, choices)
    except LedgerError as exc:
        _handle_cli_error(exc)
        return

    if json_output:
        click.echo(json.dumps(outcome, indent=2))
        return

    table = Table(title="Decrypted results", box=box.SIMPLE)
    table.add_column("Subject", style="cyan")
    table.add_column("Cleartext", justify="right")
    for label, values in outcome["results"].items():
        table.add_row(label, ", ".join(str(value) for value in values))
    console.print(table)
    console.print(f"[dim]{outcome['stats']}[/]")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
