from typing import Any, Callable, Mapping, Optional

from aws_cdk import Environment, Stack, Tags
from aws_lambda_powertools import Logger
from constructs import Construct

import common.constants as constants
from database.database_stack import DatabaseStack
from hosting.hosting_stack import HostingStack
from networking.networking_stack import NetworkingStack
from orchestration.errors import ProvisioningError
from orchestration.orchestrator import RunResult
from orchestration.resource_group import ResourceGroup
from secret_store.secret_store_stack import SecretStoreStack

logger = Logger(service=constants.LOG_SERVICE, child=True)


class CdkResourceProvider:
    """Provisions each resource group as its own CDK stack.

    Outputs are CDK tokens (and construct handles for the VPC and security
    group); CloudFormation resolves them at deploy time.
    """

    def __init__(
        self,
        app: Construct,
        env: Optional[Environment] = None,
        environment_name: str = constants.DEFAULT_ENV,
    ) -> None:
        self.app = app
        self.env = env
        self.environment_name = environment_name
        self.stacks: dict[str, Stack] = {}
        self._builders: dict[str, Callable[[ResourceGroup, Mapping[str, Any]], Stack]] = {
            constants.KIND_NETWORK: self._build_network,
            constants.KIND_SECRET_STORE: self._build_secret_store,
            constants.KIND_DATABASE: self._build_database,
            constants.KIND_HOSTING: self._build_hosting,
        }

    @staticmethod
    def stack_id(group: ResourceGroup) -> str:
        return f"{group.name}Stack"

    def provision(self, group: ResourceGroup, inputs: Mapping[str, Any]) -> Mapping[str, Any]:
        builder = self._builders.get(group.kind)
        if builder is None:
            raise ProvisioningError(
                f"No stack is defined for resource kind {group.kind!r}", group=group.name
            )
        if group.name in self.stacks:
            raise ProvisioningError(
                f"Stack for resource group {group.name!r} already exists", group=group.name
            )

        stack = builder(group, inputs)
        for parent in group.depends_on:
            stack.add_dependency(self.stacks[parent])
        self.stacks[group.name] = stack
        logger.info("Declared stack", group=group.name, stack=stack.stack_name)
        return stack.outputs

    def apply_tags(self, result: RunResult) -> None:
        """Push each group's final tag set onto its stack."""
        for name, tags in result.tags.items():
            for key, value in tags.items():
                Tags.of(self.stacks[name]).add(key, value)

    # Stack construction

    def _common(self, group: ResourceGroup) -> dict[str, Any]:
        return {
            "env": self.env,
            "description": group.description or None,
            "environment_name": self.environment_name,
        }

    def _build_network(self, group: ResourceGroup, inputs: Mapping[str, Any]) -> Stack:
        return NetworkingStack(
            self.app,
            self.stack_id(group),
            cidr=inputs["cidr"],
            cidr_mask=inputs["cidrMask"],
            max_azs=inputs["maxAzs"],
            database_port=inputs["databasePort"],
            **self._common(group),
        )

    def _build_secret_store(self, group: ResourceGroup, inputs: Mapping[str, Any]) -> Stack:
        return SecretStoreStack(
            self.app,
            self.stack_id(group),
            username=inputs["username"],
            credentials_secret_name=inputs["credentialsSecretName"],
            auth_secret_name=inputs["authSecretName"],
            exclude_characters=inputs["excludeCharacters"],
            auth_secret_length=inputs["authSecretLength"],
            **self._common(group),
        )

    def _build_database(self, group: ResourceGroup, inputs: Mapping[str, Any]) -> Stack:
        return DatabaseStack(
            self.app,
            self.stack_id(group),
            vpc=inputs["vpc"],
            vpc_id=inputs["vpcId"],
            security_group=inputs["securityGroup"],
            credentials=inputs["credentials"],
            database_name=inputs["databaseName"],
            engine_version=inputs["engineVersion"],
            allocated_storage=inputs["allocatedStorage"],
            backup_retention_days=inputs["backupRetentionDays"],
            **self._common(group),
        )

    def _build_hosting(self, group: ResourceGroup, inputs: Mapping[str, Any]) -> Stack:
        return HostingStack(
            self.app,
            self.stack_id(group),
            app_name=inputs["appName"],
            repository=inputs["repository"],
            branch_name=inputs["branchName"],
            access_token=inputs["accessToken"],
            environment_variables=inputs["environmentVariables"],
            readable_secrets=inputs["readableSecrets"],
            custom_domain=inputs["customDomain"],
            **self._common(group),
        )
