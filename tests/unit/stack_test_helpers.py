from dataclasses import dataclass
from typing import Any, Mapping, Optional
from aws_cdk.assertions import Template
from aws_cdk import App
import pytest

from deployment.cdk_provider import CdkResourceProvider
from orchestration.environment import RunEnvironment
from orchestration.orchestrator import GraphFactory, Orchestrator, RunResult, build_graph


# ------------------- Test Case Data Classes -------------------
@dataclass(frozen=True)
class ResourceCountCase:
    stack: str
    resource_type: str
    expected: int


@dataclass(frozen=True)
class UpdateDeletePolicyTestCase:
    stack: str
    id: str
    update_policy: str
    delete_policy: str


@dataclass(frozen=True)
class DeployedApp:
    provider: CdkResourceProvider
    result: RunResult
    templates: Mapping[str, Template]

    def template(self, group: str) -> Template:
        return self.templates[group]


# ------------------- Helper Functions -------------------


def find_resources_by_type(
    template: Template, resource_type: str, props: Optional[dict] = None
) -> Mapping[str, Any]:

    return template.find_resources(resource_type, props=props)


def get_single_resource_id(
    resources: Mapping[str, Any], resource_type: str = "resource"
) -> str:
    return next(iter(resources))


def build_app(
    environment: RunEnvironment, graph_factory: GraphFactory = build_graph
) -> DeployedApp:
    app = App()
    provider = CdkResourceProvider(app, environment_name=environment.environment_name)
    result = Orchestrator(provider, graph_factory=graph_factory).run(environment)
    provider.apply_tags(result)
    templates = {
        name: Template.from_stack(stack) for name, stack in provider.stacks.items()
    }
    return DeployedApp(provider=provider, result=result, templates=templates)


# ------------------- Pytest Fixtures -------------------


@pytest.fixture(scope="module")
def deployed() -> DeployedApp:
    return build_app(
        RunEnvironment(
            repository="draven/nextjs-dashboard",
            source_credential_present=True,
            custom_domain="draven.best",
        )
    )


@pytest.fixture(scope="module")
def deployed_without_hosting() -> DeployedApp:
    return build_app(RunEnvironment())
