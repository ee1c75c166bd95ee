"""
Fleet Configuration
===================

Loads all environment variables for the TEE host fleet stack.

Environment variables can be set in a .env file in the project root.
Only names and ARNs are configured here; secret VALUES never pass through
this module, they are fetched by the hosts at boot.
"""

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from tee_fleet.exceptions import ConfigurationError

load_dotenv()

# ============================================================
# Defaults
# ============================================================
DEFAULT_STACK_NAME = "Sp1TeeStack"
DEFAULT_REGION = "us-east-1"
DEFAULT_INSTANCE_TYPE = "m5a.4xlarge"
DEFAULT_FLEET_SIZE = 2
DEFAULT_SECRET_NAME = "sp1_tee"
DEFAULT_SECRET_KEYS = ("seal_url", "seal_bearer_token")
DEFAULT_REPO_URL = "https://github.com/succinctlabs/sp1-tee.git"
DEFAULT_LISTENER_PORT = 443
DEFAULT_NAT_GATEWAYS = 1

USER_DATA_MODES = ("inline", "script")

# Shipped with the package, used when TEE_FLEET_BOOTSTRAP_SCRIPT is unset
DEFAULT_BOOTSTRAP_SCRIPT = Path(__file__).parent / "scripts" / "bootstrap-host.sh"

# ============================================================
# Nitro Enclaves Support
# ============================================================
# Enclaves need a Nitro instance with at least 4 vCPUs. Burstable, Mac,
# first generation Graviton and the Xen based previous generation families
# are excluded entirely.
NON_ENCLAVE_FAMILIES = (
    "t1", "t2", "t3", "t3a", "t4g", "a1",
    "m1", "m2", "m3", "m4",
    "c1", "c3", "c4", "cc2", "cr1",
    "r3", "r4", "i2", "i3", "hs1", "d2", "h1",
    "x1", "x1e", "p2", "p3", "g2", "g3", "g3s", "f1",
)
NON_ENCLAVE_SIZES = ("nano", "micro", "small", "medium", "large")

# Secret keys become shell variable names on the hosts
ENV_NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

LOG_LEVEL = os.getenv("TEE_FLEET_LOG_LEVEL", "INFO").upper()


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(environ: Mapping[str, str], name: str, default: int, errors: List[str]) -> int:
    value = environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        errors.append(f"{name} must be an integer, got {value!r}")
        return default


def _env_list(environ: Mapping[str, str], name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = environ.get(name)
    if value is None or value.strip() == "":
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class FleetSettings:
    """
    Everything the stack needs to know about the fleet.

    Instances are immutable; use ``dataclasses.replace`` to derive variants,
    e.g. in tests.
    """

    stack_name: str = DEFAULT_STACK_NAME
    stack_prefix: str = ""
    account: Optional[str] = None
    region: Optional[str] = None
    instance_type: str = DEFAULT_INSTANCE_TYPE
    fleet_size: int = DEFAULT_FLEET_SIZE
    secret_name: str = DEFAULT_SECRET_NAME
    secret_keys: Tuple[str, ...] = DEFAULT_SECRET_KEYS
    repo_url: str = DEFAULT_REPO_URL
    repo_ref: Optional[str] = None
    user_data_mode: str = "inline"
    bootstrap_script: Path = DEFAULT_BOOTSTRAP_SCRIPT
    production: bool = False
    listener_port: int = DEFAULT_LISTENER_PORT
    nat_gateways: int = DEFAULT_NAT_GATEWAYS
    allow_vpc_https: bool = True
    parse_errors: Tuple[str, ...] = field(default=(), compare=False, repr=False)

    @property
    def stack_id(self) -> str:
        return f"{self.stack_prefix}{self.stack_name}"

    @property
    def repo_dir(self) -> str:
        """Directory `git clone` creates for repo_url."""
        name = self.repo_url.rstrip("/").rsplit("/", 1)[-1]
        if name.endswith(".git"):
            name = name[: -len(".git")]
        return name

    @property
    def install_args(self) -> Tuple[str, ...]:
        return ("--production",) if self.production else ()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FleetSettings":
        """
        Build settings from environment variables.

        Malformed integers do not raise here; they are recorded and reported
        by validate_config() together with every other problem.
        """
        if environ is None:
            environ = os.environ
        errors: List[str] = []

        script = environ.get("TEE_FLEET_BOOTSTRAP_SCRIPT")

        return cls(
            stack_name=environ.get("TEE_FLEET_STACK_NAME") or DEFAULT_STACK_NAME,
            stack_prefix=environ.get("CDK_PREFIX", ""),
            account=environ.get("CDK_DEPLOY_ACCOUNT") or environ.get("CDK_DEFAULT_ACCOUNT"),
            region=(
                environ.get("CDK_DEPLOY_REGION")
                or environ.get("CDK_DEFAULT_REGION")
                or DEFAULT_REGION
            ),
            instance_type=environ.get("TEE_FLEET_INSTANCE_TYPE") or DEFAULT_INSTANCE_TYPE,
            fleet_size=_env_int(environ, "TEE_FLEET_SIZE", DEFAULT_FLEET_SIZE, errors),
            secret_name=environ.get("TEE_FLEET_SECRET_NAME") or DEFAULT_SECRET_NAME,
            secret_keys=_env_list(environ, "TEE_FLEET_SECRET_KEYS", DEFAULT_SECRET_KEYS),
            repo_url=environ.get("TEE_FLEET_REPO_URL") or DEFAULT_REPO_URL,
            repo_ref=environ.get("TEE_FLEET_REPO_REF") or None,
            user_data_mode=(environ.get("TEE_FLEET_USER_DATA_MODE") or "inline").lower(),
            bootstrap_script=Path(script) if script else DEFAULT_BOOTSTRAP_SCRIPT,
            production=_env_bool(environ, "TEE_FLEET_PRODUCTION", False),
            listener_port=_env_int(environ, "TEE_FLEET_LISTENER_PORT", DEFAULT_LISTENER_PORT, errors),
            nat_gateways=_env_int(environ, "TEE_FLEET_NAT_GATEWAYS", DEFAULT_NAT_GATEWAYS, errors),
            allow_vpc_https=_env_bool(environ, "TEE_FLEET_ALLOW_VPC_HTTPS", True),
            parse_errors=tuple(errors),
        )


def supports_nitro_enclaves(instance_type: str) -> bool:
    """
    Offline check that an instance type can host a Nitro Enclave.

    This is a coarse filter on family and size. `tee-fleet preflight` asks
    EC2 for the authoritative answer.
    """
    if "." not in instance_type:
        return False
    family, size = instance_type.split(".", 1)
    if not family or not size:
        return False
    if family in NON_ENCLAVE_FAMILIES or family.startswith("mac"):
        return False
    return size not in NON_ENCLAVE_SIZES


# ============================================================
# Configuration Validation
# ============================================================

def validate_config(settings: FleetSettings) -> bool:
    """
    Validates that the settings describe a deployable fleet.
    Called before any construct is created.

    Raises:
        ConfigurationError listing every problem found
    """
    errors = list(settings.parse_errors)

    if not supports_nitro_enclaves(settings.instance_type):
        errors.append(
            f"Instance type {settings.instance_type} does not support Nitro Enclaves"
        )
    if settings.fleet_size < 1:
        errors.append(f"TEE_FLEET_SIZE must be at least 1, got {settings.fleet_size}")
    if not 1 <= settings.listener_port <= 65535:
        errors.append(f"TEE_FLEET_LISTENER_PORT out of range: {settings.listener_port}")
    if settings.nat_gateways < 0:
        errors.append(f"TEE_FLEET_NAT_GATEWAYS cannot be negative, got {settings.nat_gateways}")
    if not settings.secret_name:
        errors.append("TEE_FLEET_SECRET_NAME is not set")
    if not settings.secret_keys:
        errors.append("TEE_FLEET_SECRET_KEYS is empty")
    for key in settings.secret_keys:
        if not ENV_NAME_PATTERN.fullmatch(key):
            errors.append(f"Secret key {key!r} cannot be used as an environment variable name")
    if settings.user_data_mode not in USER_DATA_MODES:
        errors.append(
            f"TEE_FLEET_USER_DATA_MODE must be one of {', '.join(USER_DATA_MODES)}, "
            f"got {settings.user_data_mode!r}"
        )
    elif settings.user_data_mode == "script" and not Path(settings.bootstrap_script).is_file():
        errors.append(f"Bootstrap script not found: {settings.bootstrap_script}")

    if errors:
        raise ConfigurationError(errors)

    return True


def config_summary(settings: FleetSettings) -> Dict[str, str]:
    """Human readable view of the settings. Contains names only, never secret values."""
    return {
        "Stack": settings.stack_id,
        "Account": settings.account or "(from CLI credentials)",
        "Region": settings.region or "(from CLI credentials)",
        "Instance Type": settings.instance_type,
        "Fleet Size": f"{settings.fleet_size} (min = max)",
        "Secret": f"{settings.secret_name} [{', '.join(settings.secret_keys)}]",
        "Repository": f"{settings.repo_url}" + (f" @ {settings.repo_ref}" if settings.repo_ref else ""),
        "User Data": (
            settings.user_data_mode
            if settings.user_data_mode != "script"
            else f"script ({settings.bootstrap_script})"
        ),
        "Production Install": "yes" if settings.production else "no",
        "Listener": f"TCP/{settings.listener_port}",
        "NAT Gateways": str(settings.nat_gateways),
        "VPC HTTPS Ingress": "enabled" if settings.allow_vpc_https else "disabled",
    }


def print_config_summary(settings: FleetSettings):
    """
    Prints a summary of the configuration (for debugging).
    NEVER prints secrets!
    """
    print("=" * 60)
    print("TEE Fleet Configuration Summary")
    print("=" * 60)
    for label, value in config_summary(settings).items():
        print(f"{label + ':':<20} {value}")
    print("=" * 60)
