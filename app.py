#!/usr/bin/env python3
"""
CDK entry point (see cdk.json).

Provisions the TEE host fleet:
  - VPC with public/private subnets
  - Security group and SSM-managed instance role
  - Nitro Enclave launch template with bootstrap user data
  - Fixed-size Auto Scaling group
  - Internal network load balancer forwarding TCP/443 to the group

Settings come from the environment / .env (see tee_fleet/config.py).
"""

import logging

from tee_fleet.app import build_app
from tee_fleet.config import LOG_LEVEL

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = build_app()
app.synth()
