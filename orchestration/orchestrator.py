import os
from typing import Any, Callable, Mapping

from attrs import define, field
from aws_lambda_powertools import Logger

import common.constants as constants
from orchestration import conditional_inclusion, tag_applicator
from orchestration.conditional_inclusion import Exclusion
from orchestration.dependency_graph import DependencyGraph
from orchestration.environment import RunEnvironment
from orchestration.errors import OrchestrationError
from orchestration.provider import ResourceProvider
from orchestration.resource_group import OutputRef, ResourceGroup, TemplateValue
from orchestration.secret_ref import SecretRef
from orchestration.value_propagator import compose_connection_descriptor, resolve_inputs

logger: Logger = Logger(
    service=constants.LOG_SERVICE,
    level=os.getenv("LOG_LEVEL", constants.DEFAULT_LOG_LEVEL).upper(),
)

GraphFactory = Callable[[RunEnvironment], DependencyGraph]

PRECONDITION_HINTS = {
    constants.SOURCE_CREDENTIAL: (
        "export GITHUB_TOKEN=<token>, store it in secret "
        f"{constants.SOURCE_TOKEN_SECRET_NAME} and deploy the hosting stack separately"
    ),
}


@define(slots=True, frozen=True)
class RunResult:
    included: tuple[str, ...] = field(converter=tuple)
    excluded: tuple[Exclusion, ...] = field(converter=tuple)
    order: tuple[str, ...] = field(converter=tuple)
    outputs: Mapping[str, Mapping[str, Any]]
    tags: Mapping[str, Mapping[str, str]]

    @property
    def warnings(self) -> list[dict[str, str]]:
        return [exclusion.as_warning() for exclusion in self.excluded]

    def as_dict(self) -> dict[str, Any]:
        return {
            "included": list(self.included),
            "excluded": [exclusion.group for exclusion in self.excluded],
            "outputs": {name: dict(values) for name, values in self.outputs.items()},
        }


# ---------- group definitions ----------
def _derive_secret_fields(
    inputs: Mapping[str, Any], outputs: Mapping[str, Any]
) -> dict[str, Any]:
    credentials: SecretRef = outputs["credentialLocator"]
    auth_secret: SecretRef = outputs["authSecretLocator"]
    return {
        "usernameRef": credentials.with_key("username"),
        "passwordRef": credentials.with_key("password"),
        "authSecretRef": auth_secret.with_key("secret"),
    }


def _derive_connection(
    inputs: Mapping[str, Any], outputs: Mapping[str, Any]
) -> dict[str, Any]:
    descriptor = compose_connection_descriptor(
        {
            "host": outputs["endpoint"],
            "port": outputs["port"],
            "name": inputs["databaseName"],
            "credential": inputs["credentials"],
        }
    )
    return {
        "databaseName": descriptor.name,
        "connectionDescriptor": descriptor,
        "connectionString": descriptor.url,
    }


def _hosting_environment_variables(environment: RunEnvironment) -> dict[str, Any]:
    database = constants.DATABASE_GROUP
    secrets = constants.SECRETS_GROUP
    connection_string = OutputRef(database, "connectionString")
    variables: dict[str, Any] = {
        "POSTGRES_HOST": OutputRef(database, "endpoint"),
        "POSTGRES_PORT": OutputRef(database, "port"),
        "POSTGRES_DATABASE": OutputRef(database, "databaseName"),
        "POSTGRES_USER": TemplateValue("{user}", {"user": OutputRef(secrets, "usernameRef")}),
        "POSTGRES_URL": connection_string,
        "POSTGRES_PRISMA_URL": connection_string,
        "POSTGRES_URL_NON_POOLING": connection_string,
        "DB_PASSWORD": TemplateValue(
            "{password}", {"password": OutputRef(secrets, "passwordRef")}
        ),
        "AUTH_SECRET": TemplateValue("{secret}", {"secret": OutputRef(secrets, "authSecretRef")}),
    }
    if environment.custom_domain:
        variables["AUTH_URL"] = TemplateValue(
            "https://{subdomain}.{domain}{path}",
            {
                "subdomain": constants.HOSTING_SUBDOMAIN,
                "domain": environment.custom_domain,
                "path": constants.AUTH_PATH,
            },
        )
    return variables


def build_graph(environment: RunEnvironment) -> DependencyGraph:
    """Declare the dashboard's resource groups and their wiring."""
    graph = DependencyGraph()
    network = constants.NETWORK_GROUP
    secrets = constants.SECRETS_GROUP
    database = constants.DATABASE_GROUP

    graph.add(
        ResourceGroup(
            name=network,
            kind=constants.KIND_NETWORK,
            description="VPC and networking infrastructure for Next.js Dashboard",
            required=True,
            inputs={
                "cidr": constants.VPC_CIDR,
                "cidrMask": constants.CIDR_MASK,
                "maxAzs": constants.MAX_AZS,
                "databasePort": constants.POSTGRES_PORT,
            },
        )
    )
    graph.add(
        ResourceGroup(
            name=secrets,
            kind=constants.KIND_SECRET_STORE,
            description="Secrets Manager for database and authentication",
            required=True,
            inputs={
                "username": constants.DB_USERNAME,
                "credentialsSecretName": constants.DB_CREDENTIALS_SECRET_NAME,
                "authSecretName": constants.AUTH_SECRET_NAME,
                "excludeCharacters": constants.SECRET_EXCLUDE_CHARACTERS,
                "authSecretLength": constants.AUTH_SECRET_LENGTH,
            },
            derive=_derive_secret_fields,
        )
    )
    graph.add(
        ResourceGroup(
            name=database,
            kind=constants.KIND_DATABASE,
            description="RDS PostgreSQL database instance",
            required=True,
            depends_on=(network, secrets),
            inputs={
                "vpc": OutputRef(network, "vpc"),
                "vpcId": OutputRef(network, "vpcId"),
                "securityGroup": OutputRef(network, "databaseSecurityGroup"),
                "credentials": OutputRef(secrets, "credentialLocator"),
                "databaseName": constants.DB_NAME,
                "engineVersion": constants.DB_ENGINE_VERSION,
                "allocatedStorage": constants.DB_ALLOCATED_STORAGE_GB,
                "backupRetentionDays": constants.DB_BACKUP_RETENTION_DAYS,
            },
            derive=_derive_connection,
        )
    )
    graph.add(
        ResourceGroup(
            name=constants.HOSTING_GROUP,
            kind=constants.KIND_HOSTING,
            description="AWS Amplify hosting for Next.js Dashboard",
            optional=True,
            precondition=constants.SOURCE_CREDENTIAL,
            depends_on=(database, secrets),
            inputs={
                "appName": constants.HOSTING_APP_NAME,
                "repository": environment.repository_or_default,
                "branchName": environment.branch,
                "accessToken": TemplateValue(
                    "{token}", {"token": SecretRef(constants.SOURCE_TOKEN_SECRET_NAME)}
                ),
                "customDomain": environment.custom_domain,
                "readableSecrets": [
                    OutputRef(secrets, "credentialLocator"),
                    OutputRef(secrets, "authSecretLocator"),
                ],
                "environmentVariables": _hosting_environment_variables(environment),
            },
        )
    )
    return graph


# ---------- run ----------
class Orchestrator:
    """Entry point: one ``run`` per deployment, each on a fresh graph."""

    def __init__(
        self, provider: ResourceProvider, graph_factory: GraphFactory = build_graph
    ) -> None:
        self.provider = provider
        self.graph_factory = graph_factory

    def run(self, environment: RunEnvironment) -> RunResult:
        try:
            return self._run(environment)
        except OrchestrationError as exc:
            logger.error(
                "Orchestration run failed",
                stage=exc.stage,
                group=exc.group,
                not_attempted=list(exc.not_attempted),
                error=str(exc),
            )
            raise

    def _run(self, environment: RunEnvironment) -> RunResult:
        graph = self.graph_factory(environment)

        inclusion = conditional_inclusion.evaluate(graph, environment)
        for exclusion in inclusion.excluded:
            logger.warning(
                f"Skipping resource group {exclusion.group}",
                group=exclusion.group,
                reason=exclusion.reason,
                cause=exclusion.cause,
                hint=PRECONDITION_HINTS.get(exclusion.precondition or ""),
            )

        order = graph.topological_order(inclusion.included)
        logger.info("Resolved build order", order=order)

        def construct(group: ResourceGroup) -> dict[str, Any]:
            inputs = resolve_inputs(group, graph)
            outputs = dict(self.provider.provision(group, inputs))
            if group.derive is not None:
                outputs.update(group.derive(inputs, outputs))
            return outputs

        graph.build(order, construct)

        built = [graph.get(name) for name in order]
        tag_applicator.apply(built, environment.tags)
        logger.info("Orchestration run complete", included=order)

        return RunResult(
            included=inclusion.included,
            excluded=inclusion.excluded,
            order=order,
            outputs={group.name: group.outputs for group in built},
            tags={group.name: dict(group.tags) for group in built},
        )
