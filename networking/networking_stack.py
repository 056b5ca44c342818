from typing import Any

from aws_cdk import Stack, aws_ec2 as ec2
from constructs import Construct

from common import constants
from common.stack_context import StackContext


class NetworkingStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        cidr: str = constants.VPC_CIDR,
        cidr_mask: int = constants.CIDR_MASK,
        max_azs: int = constants.MAX_AZS,
        database_port: int = constants.POSTGRES_PORT,
        environment_name: str = constants.DEFAULT_ENV,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, env=environment_name, component="network")

        self.vpc = self.create_vpc(cidr, cidr_mask, max_azs)
        self.database_security_group = self.create_database_sg(self.vpc)
        self.hosting_security_group = self.create_hosting_sg(self.vpc)
        self.database_security_group.add_ingress_rule(
            peer=self.hosting_security_group,
            connection=ec2.Port.tcp(database_port),
            description="Allow PostgreSQL access from the hosting platform",
        )
        self.vpc_endpoint()

        self.context.add_output("VpcId", self.vpc.vpc_id, "VPC ID")
        self.context.add_output(
            "DbSecurityGroupId",
            self.database_security_group.security_group_id,
            "Database Security Group ID",
        )
        self.context.add_output(
            "HostingSecurityGroupId",
            self.hosting_security_group.security_group_id,
            "Hosting Security Group ID",
        )

    @property
    def outputs(self) -> dict[str, Any]:
        return {
            "vpc": self.vpc,
            "vpcId": self.vpc.vpc_id,
            "databaseSecurityGroup": self.database_security_group,
            "databaseSecurityGroupId": self.database_security_group.security_group_id,
            "hostingSecurityGroupId": self.hosting_security_group.security_group_id,
        }

    def create_vpc(self, cidr: str, cidr_mask: int, max_azs: int) -> ec2.Vpc:
        """RDS subnet groups need subnets in at least two AZs."""
        return ec2.Vpc(
            self,
            self.context.build_resource_id("Vpc"),
            max_azs=max_azs,
            nat_gateways=0,
            ip_addresses=ec2.IpAddresses.cidr(cidr),
            enable_dns_hostnames=True,
            enable_dns_support=True,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="Public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=cidr_mask,
                ),
                ec2.SubnetConfiguration(
                    name="Isolated",
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                    cidr_mask=cidr_mask,
                ),
            ],
        )

    def create_database_sg(self, vpc: ec2.IVpc) -> ec2.SecurityGroup:
        return ec2.SecurityGroup(
            self,
            id=self.context.build_resource_id("DatabaseSG"),
            vpc=vpc,
            allow_all_outbound=False,
            description="Security group for RDS PostgreSQL database",
        )

    def create_hosting_sg(self, vpc: ec2.IVpc) -> ec2.SecurityGroup:
        return ec2.SecurityGroup(
            self,
            id=self.context.build_resource_id("HostingSG"),
            vpc=vpc,
            allow_all_outbound=True,
            description="Security group for the hosting platform VPC connector",
        )

    def vpc_endpoint(self) -> None:
        # Gateway VPC endpoint for S3 (uses route tables in selected subnets)
        self.vpc.add_gateway_endpoint(
            "S3Endpoint",
            service=ec2.GatewayVpcEndpointAwsService.S3,
        )
