"""
CDK App Assembly
================

Builds the cdk.App holding the fleet stack. Used by the root app.py (what
`cdk synth` / `cdk deploy` run) and by `tee-fleet synth`.
"""

import logging
from typing import Optional

import aws_cdk as cdk

from tee_fleet.config import FleetSettings
from tee_fleet.stack import TeeFleetStack

logger = logging.getLogger(__name__)


def build_environment(settings: FleetSettings) -> Optional[cdk.Environment]:
    """Deployment target, or None for an environment-agnostic stack."""
    if not settings.account and not settings.region:
        return None
    return cdk.Environment(account=settings.account, region=settings.region)


def build_app(settings: Optional[FleetSettings] = None, outdir: Optional[str] = None) -> cdk.App:
    settings = settings or FleetSettings.from_env()

    app = cdk.App(outdir=outdir) if outdir else cdk.App()
    TeeFleetStack(
        app,
        settings.stack_id,
        settings=settings,
        env=build_environment(settings),
        description="Nitro Enclave host fleet behind an internal network load balancer",
    )
    logger.debug(f"App assembled with stack {settings.stack_id}")
    return app
