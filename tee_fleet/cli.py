"""
CLI for the TEE Fleet Infrastructure
====================================

Operator commands around the CDK app. Deployment itself still goes through
the CDK toolkit (`cdk deploy`), which runs app.py.

Commands:
    tee-fleet synth [--outdir DIR]            Synthesize the CloudFormation template
    tee-fleet info                            Show the effective configuration
    tee-fleet user-data [--mode MODE]         Print the rendered host bootstrap
    tee-fleet preflight                       Check deploy prerequisites in AWS
"""

import logging
import sys
from dataclasses import replace
from typing import Optional

import click
from botocore.exceptions import BotoCoreError, ClientError

from tee_fleet import __version__
from tee_fleet.config import LOG_LEVEL, USER_DATA_MODES, FleetSettings, print_config_summary, validate_config
from tee_fleet.exceptions import TeeFleetError

# Shown in place of deploy-time tokens when rendering outside a stack
SECRET_ARN_PLACEHOLDER = "<secret-arn>"
REGION_PLACEHOLDER = "<region>"


def _load_settings(**overrides) -> FleetSettings:
    settings = FleetSettings.from_env()
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        settings = replace(settings, **overrides)
    validate_config(settings)
    return settings


def _fail(message: str):
    click.echo()
    click.echo(f"❌ {message}", err=True)
    click.echo()
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=LOG_LEVEL, show_default=True, help="Python logging level")
def main(log_level: str):
    """
    TEE Fleet CLI - build and check the Nitro Enclave host fleet stack

    Settings are read from the environment and from a .env file.

    Examples:
        tee-fleet info
        tee-fleet synth --outdir cdk.out
        tee-fleet user-data --mode script
        tee-fleet preflight
    """
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--outdir", "-o", default="cdk.out", show_default=True, help="Cloud assembly output directory")
def synth(outdir: str):
    """
    Synthesize the fleet stack to a cloud assembly.

    Equivalent to `cdk synth` without the CDK toolkit; useful in CI to
    check that the stack still builds.
    """
    try:
        from tee_fleet.app import build_app

        settings = _load_settings()

        click.echo()
        click.echo(f"🏗️  Synthesizing {settings.stack_id}...")

        assembly = build_app(settings, outdir=outdir).synth()
        stack = assembly.get_stack_artifact(settings.stack_id)

        click.echo(f"✅ Template written to {stack.template_full_path}")
        click.echo()

    except TeeFleetError as e:
        _fail(str(e))
    except (ClientError, BotoCoreError) as e:
        _fail(f"AWS error: {e}")


@main.command()
def info():
    """
    Display the effective configuration (never secret values).
    """
    try:
        settings = FleetSettings.from_env()
        click.echo()
        print_config_summary(settings)
        validate_config(settings)
        click.echo("✅ Configuration is valid")
        click.echo()

    except TeeFleetError as e:
        _fail(str(e))
    except (ClientError, BotoCoreError) as e:
        _fail(f"AWS error: {e}")


@main.command("user-data")
@click.option(
    "--mode", "-m",
    type=click.Choice(USER_DATA_MODES),
    default=None,
    help="Override TEE_FLEET_USER_DATA_MODE",
)
def user_data(mode: Optional[str]):
    """
    Print the host bootstrap commands as they go into the launch template.

    The secret ARN and region are resolved at deploy time and are shown
    as placeholders.
    """
    try:
        from tee_fleet.user_data import inline_commands, script_commands

        settings = _load_settings(user_data_mode=mode)

        if settings.user_data_mode == "script":
            commands = script_commands(settings, SECRET_ARN_PLACEHOLDER, REGION_PLACEHOLDER)
        else:
            commands = inline_commands(settings, SECRET_ARN_PLACEHOLDER, REGION_PLACEHOLDER)

        click.echo("#!/bin/bash")
        for command in commands:
            click.echo(command)

    except TeeFleetError as e:
        _fail(str(e))
    except (ClientError, BotoCoreError) as e:
        _fail(f"AWS error: {e}")


@main.command()
def preflight():
    """
    Check deploy prerequisites in the target account (read-only).

    - The host secret exists and has every configured key
    - The instance type supports Nitro Enclaves in the region

    Uses the standard AWS credential chain.
    """
    try:
        from tee_fleet.preflight import run_preflight

        settings = _load_settings()

        click.echo()
        click.echo(f"🔍 Preflight for {settings.stack_id} in {settings.region}")
        click.echo("-" * 60)

        results = run_preflight(settings)
        for result in results:
            mark = "✅" if result.ok else "❌"
            click.echo(f"{mark} {result.name:<15} {result.detail}")

        click.echo()
        failed = [r for r in results if not r.ok]
        if failed:
            _fail(f"{len(failed)} preflight check(s) failed")

        click.echo("✅ Ready to deploy")
        click.echo()

    except TeeFleetError as e:
        _fail(str(e))
    except (ClientError, BotoCoreError) as e:
        _fail(f"AWS error: {e}")


if __name__ == "__main__":
    main()
