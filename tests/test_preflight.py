"""Tests for deploy preflight checks (AWS clients mocked)."""

import json
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from tee_fleet.config import FleetSettings
from tee_fleet.exceptions import PreflightError
from tee_fleet.preflight import check_instance_type, check_secret, run_preflight


def _client_error(code, operation="GetSecretValue"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _secrets_client(secret_string):
    client = MagicMock()
    client.get_secret_value.return_value = {"SecretString": secret_string}
    return client


def _ec2_client(support="supported", offered=True):
    client = MagicMock()
    client.describe_instance_types.return_value = {
        "InstanceTypes": [{"InstanceType": "m5a.4xlarge", "NitroEnclavesSupport": support}]
    }
    client.describe_instance_type_offerings.return_value = {
        "InstanceTypeOfferings": [{"InstanceType": "m5a.4xlarge"}] if offered else []
    }
    return client


@pytest.fixture
def settings():
    return FleetSettings(region="us-east-1")


class TestCheckSecret:
    """check_secret()"""

    def test_secret_with_all_keys(self, settings):
        client = _secrets_client(json.dumps({"seal_url": "https://seal", "seal_bearer_token": "t"}))

        result = check_secret(settings, client=client)

        assert result.ok is True
        client.get_secret_value.assert_called_once_with(SecretId="sp1_tee")

    def test_missing_key(self, settings):
        client = _secrets_client(json.dumps({"seal_url": "https://seal"}))

        with pytest.raises(PreflightError, match="seal_bearer_token"):
            check_secret(settings, client=client)

    def test_empty_value_counts_as_missing(self, settings):
        client = _secrets_client(json.dumps({"seal_url": "", "seal_bearer_token": "t"}))

        with pytest.raises(PreflightError, match="seal_url"):
            check_secret(settings, client=client)

    def test_secret_not_found(self, settings):
        client = MagicMock()
        client.get_secret_value.side_effect = _client_error("ResourceNotFoundException")

        with pytest.raises(PreflightError, match="not found"):
            check_secret(settings, client=client)

    def test_access_denied(self, settings):
        client = MagicMock()
        client.get_secret_value.side_effect = _client_error("AccessDeniedException")

        with pytest.raises(PreflightError, match="AccessDeniedException"):
            check_secret(settings, client=client)

    def test_not_json(self, settings):
        with pytest.raises(PreflightError, match="not valid JSON"):
            check_secret(settings, client=_secrets_client("seal_url=x"))

    def test_not_an_object(self, settings):
        with pytest.raises(PreflightError, match="JSON object"):
            check_secret(settings, client=_secrets_client("[1, 2]"))

    def test_binary_secret(self, settings):
        client = MagicMock()
        client.get_secret_value.return_value = {"SecretBinary": b"\x00"}

        with pytest.raises(PreflightError, match="SecretString"):
            check_secret(settings, client=client)

    def test_secret_value_never_in_result(self, settings):
        client = _secrets_client(json.dumps({"seal_url": "https://seal", "seal_bearer_token": "hunter2"}))

        result = check_secret(settings, client=client)

        assert "hunter2" not in result.detail


class TestCheckInstanceType:
    """check_instance_type()"""

    def test_supported(self, settings):
        client = _ec2_client()

        assert check_instance_type(settings, client=client).ok is True
        client.describe_instance_types.assert_called_once_with(InstanceTypes=["m5a.4xlarge"])

    def test_unsupported(self, settings):
        with pytest.raises(PreflightError, match="does not support Nitro Enclaves"):
            check_instance_type(settings, client=_ec2_client(support="unsupported"))

    def test_not_offered(self, settings):
        with pytest.raises(PreflightError, match="not offered"):
            check_instance_type(settings, client=_ec2_client(offered=False))

    def test_offerings_access_denied(self, settings):
        client = _ec2_client()
        client.describe_instance_type_offerings.side_effect = _client_error(
            "UnauthorizedOperation", "DescribeInstanceTypeOfferings"
        )

        with pytest.raises(PreflightError, match="UnauthorizedOperation"):
            check_instance_type(settings, client=client)

    def test_invalid_type(self, settings):
        client = MagicMock()
        client.describe_instance_types.side_effect = _client_error(
            "InvalidInstanceType", "DescribeInstanceTypes"
        )

        with pytest.raises(PreflightError, match="InvalidInstanceType"):
            check_instance_type(settings, client=client)


class TestRunPreflight:
    """run_preflight()"""

    def test_all_pass(self, settings):
        clients = {
            "secretsmanager": _secrets_client(json.dumps({"seal_url": "u", "seal_bearer_token": "t"})),
            "ec2": _ec2_client(),
        }

        results = run_preflight(settings, clients=clients)

        assert [r.name for r in results] == ["secret", "instance_type"]
        assert all(r.ok for r in results)

    def test_failure_does_not_stop_other_checks(self, settings):
        secrets = MagicMock()
        secrets.get_secret_value.side_effect = _client_error("ResourceNotFoundException")
        ec2 = _ec2_client()

        results = run_preflight(settings, clients={"secretsmanager": secrets, "ec2": ec2})

        assert [r.ok for r in results] == [False, True]
        ec2.describe_instance_types.assert_called_once()

    def test_offerings_error_becomes_failed_result(self, settings):
        ec2 = _ec2_client()
        ec2.describe_instance_type_offerings.side_effect = _client_error(
            "UnauthorizedOperation", "DescribeInstanceTypeOfferings"
        )
        clients = {
            "secretsmanager": _secrets_client(json.dumps({"seal_url": "u", "seal_bearer_token": "t"})),
            "ec2": ec2,
        }

        results = run_preflight(settings, clients=clients)

        assert [r.ok for r in results] == [True, False]
        assert "UnauthorizedOperation" in results[1].detail

    def test_credential_errors_are_reported(self, settings):
        secrets = MagicMock()
        secrets.get_secret_value.side_effect = NoCredentialsError()

        results = run_preflight(settings, clients={"secretsmanager": secrets, "ec2": _ec2_client()})

        assert results[0].ok is False
        assert "AWS error" in results[0].detail

    def test_default_clients_use_region(self, settings):
        with patch("tee_fleet.preflight.boto3.client") as client_factory:
            client_factory.return_value = _ec2_client()
            check_instance_type(settings)

        client_factory.assert_called_once_with("ec2", region_name="us-east-1")
