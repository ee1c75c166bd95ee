"""Shared fixtures for fleet stack tests."""

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Template

from tee_fleet.config import FleetSettings
from tee_fleet.stack import TeeFleetStack


@pytest.fixture
def settings():
    """Default settings, independent of the caller's environment."""
    return FleetSettings()


@pytest.fixture
def build_stack():
    """Factory building an environment-agnostic stack from settings."""

    def _build(settings, construct_id="TestFleet"):
        app = cdk.App()
        return TeeFleetStack(app, construct_id, settings=settings)

    return _build


@pytest.fixture
def template(settings, build_stack):
    return Template.from_stack(build_stack(settings))


@pytest.fixture
def script_file(tmp_path):
    path = tmp_path / "bootstrap.sh"
    path.write_text("#!/bin/bash\necho bootstrapping\n")
    return path
