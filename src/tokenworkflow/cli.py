"""Command line tools for operating the workflow governance configuration."""

import logging
import sys

import click

from tokenworkflow.domain.exceptions import GovernanceConfigError
from tokenworkflow.domain.governance import WorkflowGovernanceConfig, evaluate_governance
from tokenworkflow.infrastructure.config import load_governance_config

logger = logging.getLogger("tokenworkflow")


def _configure_logging(debug: bool) -> None:
    """Send package logs to stderr, at DEBUG when requested."""
    level = logging.DEBUG if debug else logging.WARNING
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.handlers[:] = [handler]
    logger.setLevel(level)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool) -> None:
    """Token workflow orchestration tools."""
    _configure_logging(debug)


@cli.command()
@click.argument("identity")
@click.option("--policy-version", required=True, help="Governance policy version")
@click.option(
    "--rollout-percentage",
    default=100,
    show_default=True,
    type=click.IntRange(0, 100),
    help="Share of identities that are governed",
)
def bucket(identity: str, policy_version: str, rollout_percentage: int) -> None:
    """Show the rollout bucket of IDENTITY and whether it is governed."""
    config = WorkflowGovernanceConfig(
        policy_version=policy_version, rollout_percentage=rollout_percentage
    )
    decision = evaluate_governance(config, identity)
    click.echo(f"Identity: {identity}")
    click.echo(f"Policy version: {policy_version}")
    click.echo(f"Bucket: {decision.bucket}")
    label = "governed" if decision.governed else "not governed"
    click.echo(click.style(f"Decision: {label}", fg="green" if decision.governed else "yellow"))


@cli.command("check-config")
@click.argument("path", type=click.Path(dir_okay=False))
def check_config(path: str) -> None:
    """Validate a governance config file and print the effective values."""
    try:
        config = load_governance_config(path)
    except GovernanceConfigError as e:
        click.echo(click.style(f"[ERROR] {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("[OK] Governance config is valid", fg="green"))
    click.echo(f"  enabled: {config.enabled}")
    click.echo(f"  enforce_validation: {config.enforce_validation}")
    click.echo(f"  enforce_preconditions: {config.enforce_preconditions}")
    click.echo(
        f"  enforce_post_commit_verification: {config.enforce_post_commit_verification}"
    )
    click.echo(f"  max_retry_attempts: {config.max_retry_attempts}")
    click.echo(f"  policy_version: {config.policy_version}")
    click.echo(f"  rollout_percentage: {config.rollout_percentage}")


if __name__ == "__main__":
    cli()
