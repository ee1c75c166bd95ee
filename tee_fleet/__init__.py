"""
TEE Fleet Infrastructure
========================

AWS CDK definitions for a fleet of Nitro Enclave hosts behind an internal
network load balancer.

Usage:
    from tee_fleet import FleetSettings, TeeFleetStack

    app = cdk.App()
    TeeFleetStack(app, "Sp1TeeStack", settings=FleetSettings.from_env())
    app.synth()

    # Or use CLI
    # $ tee-fleet synth
"""

__version__ = "0.1.0"

from tee_fleet.config import FleetSettings, validate_config
from tee_fleet.exceptions import ConfigurationError, PreflightError, TeeFleetError
from tee_fleet.stack import TeeFleetStack

__all__ = [
    "FleetSettings",
    "validate_config",
    "TeeFleetStack",
    "TeeFleetError",
    "ConfigurationError",
    "PreflightError",
]
