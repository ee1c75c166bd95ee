"""
Host Bootstrap (User Data)
==========================

Renders the first-boot script for fleet hosts. Two interchangeable modes:

- inline: the bootstrap steps are embedded as individual user-data commands
- script: a shell script file is base64-encoded into the user data, decoded
  on the host and executed with the deploy-time values exported

Both modes end with the same host state: the repository checked out in
/home/ec2-user, a .env file holding the configured secret keys, and the
host install script run.

Usage:
    from tee_fleet.user_data import build_user_data

    user_data = build_user_data(settings, secret.secret_arn, stack.region)
"""

import base64
import logging
import shlex
from pathlib import Path
from typing import List, Union

from aws_cdk import aws_ec2 as ec2

from tee_fleet.config import USER_DATA_MODES, FleetSettings
from tee_fleet.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

HOST_USER = "ec2-user"
HOST_HOME = "/home/ec2-user"
HOST_PACKAGES = ("git", "aws-cli", "jq")
INSTALL_SCRIPT = "./scripts/install-host.sh"

SCRIPT_DIR = "/opt/tee-fleet"
SCRIPT_NAME = "bootstrap-host.sh"


def secret_env_name(key: str) -> str:
    """seal_bearer_token -> SEAL_BEARER_TOKEN"""
    return key.upper()


def inline_commands(settings: FleetSettings, secret_arn: str, region: str) -> List[str]:
    """
    Bootstrap steps as a list of shell commands.

    secret_arn and region may be CDK tokens; they are only interpolated,
    never inspected.
    """
    commands = [
        f"su {HOST_USER}",
        f"sudo dnf install {' '.join(HOST_PACKAGES)} -y",
        f"cd {HOST_HOME}",
        f"git clone {settings.repo_url}",
        f"cd {settings.repo_dir}",
    ]
    if settings.repo_ref:
        commands.append(f"git checkout {settings.repo_ref}")

    commands.append(f"export HOME={HOST_HOME}")

    # Retrieve secrets and add them to .env file
    commands.append(
        f"SECRET_JSON=$(aws secretsmanager get-secret-value --secret-id {secret_arn} "
        f"--region {region} --query SecretString --output text)"
    )
    for key in settings.secret_keys:
        name = secret_env_name(key)
        commands.append(f"{name}=$(echo $SECRET_JSON | jq -r .{key})")
    for key in settings.secret_keys:
        name = secret_env_name(key)
        commands.append(f'echo "{name}=${name}" >> .env')

    commands.append(" ".join((INSTALL_SCRIPT,) + settings.install_args))
    return commands


def encode_script(path: Union[str, Path]) -> str:
    """
    Base64 text of a script file.

    Raises:
        ConfigurationError if the file cannot be read
    """
    path = Path(path)
    try:
        content = path.read_bytes()
    except OSError as e:
        raise ConfigurationError(f"Cannot read bootstrap script {path}: {e}") from e
    if not content.strip():
        raise ConfigurationError(f"Bootstrap script {path} is empty")
    return base64.b64encode(content).decode("ascii")


def script_commands(settings: FleetSettings, secret_arn: str, region: str) -> List[str]:
    """
    Commands that unpack and run the bootstrap script file.

    The script reads its inputs from the exported variables below; see
    tee_fleet/scripts/bootstrap-host.sh for the contract.
    """
    encoded = encode_script(settings.bootstrap_script)
    target = f"{SCRIPT_DIR}/{SCRIPT_NAME}"

    exports = {
        "SECRET_ARN": secret_arn,
        "AWS_REGION": region,
        "REPO_URL": settings.repo_url,
        "REPO_DIR": settings.repo_dir,
        "REPO_REF": settings.repo_ref or "",
        "SECRET_KEYS": " ".join(settings.secret_keys),
        "INSTALL_ARGS": " ".join(settings.install_args),
    }

    commands = [f"export {name}={shlex.quote(value)}" for name, value in exports.items()]
    commands += [
        f"mkdir -p {SCRIPT_DIR}",
        f"echo {encoded} | base64 --decode > {target}",
        f"chmod +x {target}",
        target,
    ]
    return commands


def build_inline_user_data(settings: FleetSettings, secret_arn: str, region: str) -> ec2.UserData:
    user_data = ec2.UserData.for_linux()
    user_data.add_commands(*inline_commands(settings, secret_arn, region))
    return user_data


def build_script_user_data(settings: FleetSettings, secret_arn: str, region: str) -> ec2.UserData:
    user_data = ec2.UserData.for_linux()
    user_data.add_commands(*script_commands(settings, secret_arn, region))
    logger.info(f"📜 Embedded bootstrap script {settings.bootstrap_script}")
    return user_data


_BUILDERS = {
    "inline": build_inline_user_data,
    "script": build_script_user_data,
}


def build_user_data(settings: FleetSettings, secret_arn: str, region: str) -> ec2.UserData:
    """
    Linux user data for the configured mode.

    Raises:
        ConfigurationError for an unknown mode or an unreadable script
    """
    builder = _BUILDERS.get(settings.user_data_mode)
    if builder is None:
        raise ConfigurationError(
            f"Unknown user data mode {settings.user_data_mode!r} "
            f"(expected one of {', '.join(USER_DATA_MODES)})"
        )
    return builder(settings, secret_arn, region)
