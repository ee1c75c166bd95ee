"""
TEE Fleet Stack
===============

CloudFormation stack for a fixed-size fleet of Nitro Enclave hosts:

    VPC (public + private-with-egress subnets, 1 NAT gateway)
     ├── Security group (SSH from anywhere, listener port from the VPC)
     ├── Launch template (enclave-enabled instance, AL2023, user data, SSM role)
     ├── Auto Scaling group (min = max = fleet size, rolling updates)
     └── Network load balancer (internal) ── TCP listener ── target group → ASG

The hosts read their runtime configuration from an existing Secrets Manager
secret at boot (see tee_fleet.user_data). The stack only grants read access
to it; the secret itself is managed outside this stack.
"""

import logging
from typing import Optional

from aws_cdk import (
    CfnOutput,
    Stack,
    aws_autoscaling as autoscaling,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from tee_fleet.config import FleetSettings, validate_config
from tee_fleet.user_data import build_user_data

logger = logging.getLogger(__name__)

SSM_MANAGED_POLICY = "service-role/AmazonEC2RoleforSSM"
SSH_PORT = 22


class TeeFleetStack(Stack):
    """
    Stack describing the enclave host fleet.

    Args:
        scope: parent construct (normally the cdk.App)
        construct_id: stack id
        settings: fleet settings; read from the environment when omitted
        **kwargs: passed to cdk.Stack (env, description, ...)

    Raises:
        ConfigurationError before any resource is declared if the settings
        cannot produce a working fleet
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        settings: Optional[FleetSettings] = None,
        **kwargs,
    ) -> None:
        settings = settings or FleetSettings.from_env()
        validate_config(settings)

        super().__init__(scope, construct_id, **kwargs)
        self.settings = settings

        logger.info(
            f"🏗️  Building {construct_id}: {settings.fleet_size} x {settings.instance_type}, "
            f"user data mode={settings.user_data_mode}"
        )

        self.vpc = ec2.Vpc(
            self,
            "SP1_TEE_VPC",
            nat_gateways=settings.nat_gateways,
            enable_dns_support=True,
            enable_dns_hostnames=True,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                ),
                ec2.SubnetConfiguration(
                    name="private",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                ),
            ],
        )

        # Instance Role and SSM Managed Policy
        self.role = iam.Role(
            self,
            "SP1_TEE_InstanceSSM",
            assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"),
        )
        self.role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name(SSM_MANAGED_POLICY)
        )

        self.security_group = ec2.SecurityGroup(
            self,
            "SP1_TEE_SecurityGroup",
            vpc=self.vpc,
            allow_all_outbound=True,
            description="Private SG for SP1 TEE enclaves",
        )
        self.security_group.add_ingress_rule(
            ec2.Peer.any_ipv4(),
            ec2.Port.tcp(SSH_PORT),
            "Allow SSH access",
        )
        if settings.allow_vpc_https:
            # NLB traffic and health checks arrive from inside the VPC
            self.security_group.add_ingress_rule(
                ec2.Peer.ipv4(self.vpc.vpc_cidr_block),
                ec2.Port.tcp(settings.listener_port),
                "Allow load balancer traffic from the VPC",
            )

        self.secret = secretsmanager.Secret.from_secret_name_v2(
            self,
            "SP1_TEE_Secret",
            settings.secret_name,
        )
        self.secret.grant_read(self.role)

        self.user_data = build_user_data(settings, self.secret.secret_arn, self.region)

        self.launch_template = ec2.LaunchTemplate(
            self,
            "SP1_TEE_LaunchTemplate",
            instance_type=ec2.InstanceType(settings.instance_type),
            machine_image=ec2.MachineImage.latest_amazon_linux2023(),
            security_group=self.security_group,
            user_data=self.user_data,
            nitro_enclave_enabled=True,
            role=self.role,
        )

        self.load_balancer = elbv2.NetworkLoadBalancer(
            self,
            "SP1_TEE_NetworkLoadBalancer",
            vpc=self.vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            internet_facing=False,
        )

        self.auto_scaling_group = autoscaling.AutoScalingGroup(
            self,
            "SP1_TEE_AutoScalingGroup",
            min_capacity=settings.fleet_size,
            max_capacity=settings.fleet_size,
            launch_template=self.launch_template,
            vpc=self.vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            update_policy=autoscaling.UpdatePolicy.rolling_update(),
        )

        self.target_group = elbv2.NetworkTargetGroup(
            self,
            "SP1_TEE_NetworkLoadBalancer_AutoScalingGroupTarget",
            targets=[self.auto_scaling_group],
            protocol=elbv2.Protocol.TCP,
            port=settings.listener_port,
            vpc=self.vpc,
        )

        self.listener = self.load_balancer.add_listener(
            "SP1_TEE_NetworkLoadBalancer_HTTPSListener",
            port=settings.listener_port,
            protocol=elbv2.Protocol.TCP,
            default_target_groups=[self.target_group],
        )

        CfnOutput(
            self,
            "LoadBalancerDnsName",
            value=self.load_balancer.load_balancer_dns_name,
            description="Internal DNS name of the enclave host load balancer",
        )
        CfnOutput(
            self,
            "AutoScalingGroupName",
            value=self.auto_scaling_group.auto_scaling_group_name,
        )
        CfnOutput(self, "VpcId", value=self.vpc.vpc_id)
