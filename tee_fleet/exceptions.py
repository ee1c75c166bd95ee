"""
TEE Fleet Exceptions
====================

Errors raised while building or checking the fleet infrastructure.
Deployment failures themselves are reported by CloudFormation, not here.
"""


class TeeFleetError(Exception):
    """Base class for every error raised by tee_fleet."""


class ConfigurationError(TeeFleetError, ValueError):
    """Settings are missing or would produce an unusable fleet."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(
            "Configuration errors:\n" + "\n".join(f"  - {e}" for e in self.errors)
        )


class PreflightError(TeeFleetError):
    """A deploy prerequisite in the target account is not satisfied."""
