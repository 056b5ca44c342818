from typing import Any

from aws_cdk import (
    Duration,
    RemovalPolicy,
    Stack,
    Tags,
    aws_ec2 as ec2,
    aws_rds as rds,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from common import constants
from common.stack_context import StackContext
from orchestration.secret_ref import SecretRef


class DatabaseStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        vpc: ec2.IVpc,
        vpc_id: str,
        security_group: ec2.ISecurityGroup,
        credentials: SecretRef,
        database_name: str = constants.DB_NAME,
        engine_version: str = constants.DB_ENGINE_VERSION,
        allocated_storage: int = constants.DB_ALLOCATED_STORAGE_GB,
        backup_retention_days: int = constants.DB_BACKUP_RETENTION_DAYS,
        environment_name: str = constants.DEFAULT_ENV,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, env=environment_name, component="database")
        self.database_name = database_name

        engine = rds.DatabaseInstanceEngine.postgres(
            version=rds.PostgresEngineVersion.of(
                engine_version, constants.DB_ENGINE_MAJOR_VERSION
            )
        )
        # Imported by ARN so the secret attachment lives in this stack.
        self.credentials_secret = secretsmanager.Secret.from_secret_complete_arn(
            self, self.context.build_resource_id("Credentials"), credentials.locator
        )
        self.parameter_group = self._build_parameter_group(engine)
        self.db_instance = self._build_db_instance(
            engine=engine,
            vpc=vpc,
            security_group=security_group,
            allocated_storage=allocated_storage,
            backup_retention_days=backup_retention_days,
        )

        self.db_endpoint = self.db_instance.db_instance_endpoint_address
        self.db_port = self.db_instance.db_instance_endpoint_port

        self.context.add_output("DbEndpoint", self.db_endpoint, "Database endpoint")
        self.context.add_output("DbPort", self.db_port, "Database port")
        self.context.add_output("DbName", self.database_name, "Database name")
        self.context.add_output(
            "DbInstanceIdentifier",
            self.db_instance.instance_identifier,
            "Database instance identifier",
            export=False,
        )
        self.context.add_output("DbVpcId", vpc_id, "VPC hosting the database", export=False)
        self.context.add_output(
            "ConnectionStringTemplate",
            f"{constants.CONNECTION_SCHEME}://<username>:<password>@"
            f"{self.db_endpoint}:{self.db_port}/{self.database_name}",
            "PostgreSQL connection string template",
            export=False,
        )

        Tags.of(self).add("Database", f"PostgreSQL-{constants.DB_ENGINE_MAJOR_VERSION}")

    @property
    def outputs(self) -> dict[str, Any]:
        return {
            "endpoint": self.db_endpoint,
            "port": self.db_port,
            "instanceIdentifier": self.db_instance.instance_identifier,
        }

    def _build_parameter_group(self, engine: rds.IInstanceEngine) -> rds.ParameterGroup:
        return rds.ParameterGroup(
            self,
            self.context.build_resource_id("ParameterGroup"),
            engine=engine,
            description="Parameter group for NextJS Dashboard PostgreSQL",
            parameters={"rds.force_ssl": "0"},
        )

    def _build_db_instance(
        self,
        engine: rds.IInstanceEngine,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
        allocated_storage: int,
        backup_retention_days: int,
    ) -> rds.DatabaseInstance:
        """Free tier sized PostgreSQL instance in the isolated subnets."""
        return rds.DatabaseInstance(
            self,
            self.context.build_resource_id("Instance"),
            instance_identifier=self.context.build_resource_name("instance"),
            engine=engine,
            instance_type=ec2.InstanceType.of(
                ec2.InstanceClass.T3, ec2.InstanceSize.MICRO
            ),
            credentials=rds.Credentials.from_secret(self.credentials_secret),
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_ISOLATED),
            security_groups=[security_group],
            database_name=self.database_name,
            allocated_storage=allocated_storage,
            storage_type=rds.StorageType.GP2,
            multi_az=False,
            publicly_accessible=False,
            backup_retention=Duration.days(backup_retention_days),
            delete_automated_backups=True,
            removal_policy=RemovalPolicy.SNAPSHOT,
            deletion_protection=False,
            parameter_group=self.parameter_group,
            enable_performance_insights=False,
            monitoring_interval=Duration.seconds(constants.DB_MONITORING_INTERVAL_SECONDS),
            cloudwatch_logs_exports=["postgresql"],
        )
