import pytest

from orchestration import conditional_inclusion
from orchestration.conditional_inclusion import (
    EXCLUDED_DEPENDENCY,
    MISSING_PRECONDITION,
    Exclusion,
)
from orchestration.environment import RunEnvironment
from orchestration.errors import UnsatisfiedDependencyError
from orchestration.orchestrator import build_graph
from orchestration_test_helpers import GroupSpec, make_graph

STORE_SPECS = [
    GroupSpec("Network"),
    GroupSpec("Store", depends_on=("Network",), optional=True, precondition="store_token"),
    GroupSpec("Cache", depends_on=("Store",)),
    GroupSpec("Frontend", depends_on=("Cache",)),
    GroupSpec("Metrics", depends_on=("Network",)),
]


def test_everything_included_when_preconditions_hold():
    graph = make_graph(STORE_SPECS)
    environment = RunEnvironment(extra_preconditions={"store_token"})

    result = conditional_inclusion.evaluate(graph, environment)

    assert result.included == ("Network", "Store", "Cache", "Frontend", "Metrics")
    assert result.excluded == ()


def test_exclusion_propagates_to_transitive_dependents():
    graph = make_graph(STORE_SPECS)

    result = conditional_inclusion.evaluate(graph, RunEnvironment())

    assert result.included == ("Network", "Metrics")
    assert result.excluded == (
        Exclusion("Store", MISSING_PRECONDITION, cause="Store", precondition="store_token"),
        Exclusion("Cache", EXCLUDED_DEPENDENCY, cause="Store"),
        Exclusion("Frontend", EXCLUDED_DEPENDENCY, cause="Store"),
    )


def test_evaluation_is_pure():
    graph = make_graph(STORE_SPECS)
    environment = RunEnvironment()

    first = conditional_inclusion.evaluate(graph, environment)
    second = conditional_inclusion.evaluate(graph, environment)

    assert first == second
    assert all(not group.is_built and group.tags == {} for group in graph)


def test_required_group_behind_optional_group_fails_fast():
    graph = make_graph(
        [
            GroupSpec("Network"),
            GroupSpec("Store", depends_on=("Network",), optional=True, precondition="store_token"),
            GroupSpec("Database", depends_on=("Store",), required=True),
        ]
    )

    with pytest.raises(UnsatisfiedDependencyError) as exc_info:
        conditional_inclusion.evaluate(graph, RunEnvironment())

    assert exc_info.value.dependent == "Database"
    assert exc_info.value.excluded == "Store"
    assert exc_info.value.stage == "conditional evaluation"


def test_warning_record_shape():
    exclusion = Exclusion("Hosting", MISSING_PRECONDITION, cause="Hosting")
    assert exclusion.as_warning() == {"group": "Hosting", "reason": "missing precondition"}


# ------------------- Dashboard definitions -------------------

DASHBOARD_CASES = [
    pytest.param(
        RunEnvironment(source_credential_present=True),
        ("Network", "Secrets", "Database", "Hosting"),
        (),
        id="token-present",
    ),
    pytest.param(
        RunEnvironment(repository="draven/nextjs-dashboard"),
        ("Network", "Secrets", "Database"),
        ("Hosting",),
        id="token-missing",
    ),
]


@pytest.mark.parametrize("environment,included,excluded", DASHBOARD_CASES)
def test_dashboard_hosting_follows_source_credential(environment, included, excluded):
    result = conditional_inclusion.evaluate(build_graph(environment), environment)
    assert result.included == included
    assert result.excluded_names == excluded
