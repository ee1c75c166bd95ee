"""
Deploy Preflight Checks
=======================

Read-only checks against the target AWS account, run before `cdk deploy`:

1. The host secret exists and its JSON carries every configured key
2. The instance type is offered in the region and supports Nitro Enclaves

Nothing here creates or modifies resources. Secret VALUES are parsed only
to check key presence and are never logged or returned.

Usage:
    from tee_fleet.preflight import run_preflight

    results = run_preflight(settings)
"""

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tee_fleet.config import FleetSettings
from tee_fleet.exceptions import PreflightError

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str


def _client(service: str, settings: FleetSettings):
    return boto3.client(service, region_name=settings.region)


def check_secret(settings: FleetSettings, client=None) -> CheckResult:
    """
    Verify the host secret exists and contains every key in settings.secret_keys.

    Raises:
        PreflightError if the secret is missing, unreadable, not a JSON
        object, or lacks a key
    """
    client = client or _client("secretsmanager", settings)
    name = settings.secret_name

    try:
        response = client.get_secret_value(SecretId=name)
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "Unknown")
        if code == "ResourceNotFoundException":
            raise PreflightError(f"Secret {name} not found in {settings.region}") from e
        raise PreflightError(f"Cannot read secret {name}: {code}") from e

    secret_string = response.get("SecretString")
    if secret_string is None:
        raise PreflightError(f"Secret {name} has no SecretString (binary secrets are not supported)")

    try:
        values = json.loads(secret_string)
    except json.JSONDecodeError as e:
        raise PreflightError(f"Secret {name} is not valid JSON") from e
    if not isinstance(values, dict):
        raise PreflightError(f"Secret {name} must be a JSON object")

    missing = [key for key in settings.secret_keys if not values.get(key)]
    if missing:
        raise PreflightError(f"Secret {name} is missing key(s): {', '.join(missing)}")

    logger.info(f"✅ Secret {name} has keys {', '.join(settings.secret_keys)}")
    return CheckResult("secret", True, f"{name} has {len(settings.secret_keys)} required key(s)")


def check_instance_type(settings: FleetSettings, client=None) -> CheckResult:
    """
    Verify the instance type exists in the region and supports Nitro Enclaves.

    Raises:
        PreflightError otherwise
    """
    client = client or _client("ec2", settings)
    instance_type = settings.instance_type

    try:
        response = client.describe_instance_types(InstanceTypes=[instance_type])
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "Unknown")
        raise PreflightError(f"Instance type {instance_type} rejected by EC2: {code}") from e

    types = response.get("InstanceTypes", [])
    if not types:
        raise PreflightError(f"Instance type {instance_type} not available in {settings.region}")

    support = types[0].get("NitroEnclavesSupport", "unsupported")
    if support != "supported":
        raise PreflightError(f"Instance type {instance_type} does not support Nitro Enclaves")

    try:
        offerings = client.describe_instance_type_offerings(
            LocationType="region",
            Filters=[{"Name": "instance-type", "Values": [instance_type]}],
        )
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "Unknown")
        raise PreflightError(f"Cannot list offerings for {instance_type}: {code}") from e
    if not offerings.get("InstanceTypeOfferings"):
        raise PreflightError(f"Instance type {instance_type} is not offered in {settings.region}")

    logger.info(f"✅ {instance_type} supports Nitro Enclaves in {settings.region}")
    return CheckResult("instance_type", True, f"{instance_type} supports Nitro Enclaves")


def run_preflight(settings: FleetSettings, clients: Optional[dict] = None) -> List[CheckResult]:
    """
    Run every check and collect results. A failing check does not stop
    the others.

    Args:
        settings: fleet settings
        clients: optional {"secretsmanager": ..., "ec2": ...} overrides

    Returns:
        One CheckResult per check, failures included (ok=False)
    """
    clients = clients or {}
    results = []

    checks = (
        (check_secret, "secretsmanager"),
        (check_instance_type, "ec2"),
    )
    for check, service in checks:
        try:
            results.append(check(settings, client=clients.get(service)))
        except PreflightError as e:
            logger.warning(f"❌ {e}")
            results.append(CheckResult(check.__name__.replace("check_", ""), False, str(e)))
        except (ClientError, BotoCoreError) as e:
            # Not a verdict on the resource: credentials, endpoints, throttling
            logger.error(f"AWS error during {check.__name__}: {e}")
            results.append(CheckResult(check.__name__.replace("check_", ""), False, f"AWS error: {e}"))

    return results
