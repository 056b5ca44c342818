from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import pytest

import common.constants as constants
from orchestration.dependency_graph import DependencyGraph
from orchestration.environment import RunEnvironment
from orchestration.errors import ProvisioningError
from orchestration.resource_group import ResourceGroup
from orchestration.secret_ref import SecretRef

STUB_VPC_ID = "vpc-0a1b2c3d"
STUB_ACCOUNT_ARN = "arn:aws:secretsmanager:ap-southeast-2:123456789012:secret"
# Never produced by anything in the run; used to prove nothing leaks it.
PLAINTEXT_PASSWORD = "correct-horse-battery-staple"


# ------------------- Stub provider -------------------
@dataclass
class StubResourceProvider:
    """Deterministic provider that never leaves the process."""

    fail_on: frozenset = frozenset()
    calls: list = field(default_factory=list)

    def provision(self, group: ResourceGroup, inputs: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append((group.name, dict(inputs)))
        if group.name in self.fail_on:
            raise ProvisioningError(f"stub refused to provision {group.name}")
        return getattr(self, f"_{group.kind}")(inputs)

    @property
    def provisioned(self) -> list[str]:
        return [name for name, _ in self.calls]

    def _network(self, inputs: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "vpc": STUB_VPC_ID,
            "vpcId": STUB_VPC_ID,
            "databaseSecurityGroup": "sg-database",
            "databaseSecurityGroupId": "sg-database",
            "hostingSecurityGroupId": "sg-hosting",
        }

    def _secret_store(self, inputs: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "credentialLocator": SecretRef(
                f"{STUB_ACCOUNT_ARN}:{inputs.get('credentialsSecretName', 'db')}-AbCdEf"
            ),
            "authSecretLocator": SecretRef(
                f"{STUB_ACCOUNT_ARN}:{inputs.get('authSecretName', 'auth')}-GhIjKl"
            ),
        }

    def _database(self, inputs: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "endpoint": f"{inputs.get('databaseName', 'db')}.{inputs.get('vpcId')}.rds.internal",
            "port": str(constants.POSTGRES_PORT),
            "instanceIdentifier": "dashboard-db-1",
        }

    def _hosting(self, inputs: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "appId": "d1a2b3c4",
            "defaultDomain": "d1a2b3c4.amplifyapp.com",
            "branchName": inputs.get("branchName", constants.DEFAULT_BRANCH),
        }


# ------------------- Test Case Data Classes -------------------
@dataclass(frozen=True)
class GroupSpec:
    name: str
    depends_on: tuple = ()
    optional: bool = False
    precondition: Optional[str] = None
    required: bool = False
    kind: str = constants.KIND_NETWORK


# ------------------- Helper Functions -------------------
def make_group(spec: GroupSpec, inputs: Optional[Mapping[str, Any]] = None) -> ResourceGroup:
    return ResourceGroup(
        name=spec.name,
        kind=spec.kind,
        depends_on=spec.depends_on,
        optional=spec.optional,
        precondition=spec.precondition,
        required=spec.required,
        inputs=inputs or {},
    )


def make_graph(specs: Iterable[GroupSpec]) -> DependencyGraph:
    graph = DependencyGraph()
    for spec in specs:
        graph.add(make_group(spec))
    return graph


def linear_chain(*names: str) -> DependencyGraph:
    graph = DependencyGraph()
    previous: tuple = ()
    for name in names:
        graph.add(make_group(GroupSpec(name=name, depends_on=previous)))
        previous = (name,)
    return graph


# ------------------- Pytest Fixtures -------------------
@pytest.fixture
def stub_provider() -> StubResourceProvider:
    return StubResourceProvider()


@pytest.fixture
def environment_with_token() -> RunEnvironment:
    return RunEnvironment(
        repository="draven/nextjs-dashboard",
        source_credential_present=True,
    )


@pytest.fixture
def environment_without_token() -> RunEnvironment:
    return RunEnvironment(repository="draven/nextjs-dashboard")
