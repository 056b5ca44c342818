import pytest
from aws_cdk.assertions import Match
from stack_test_helpers import (
    DeployedApp,
    ResourceCountCase,
    UpdateDeletePolicyTestCase,
    build_app,
    deployed,
    deployed_without_hosting,
    find_resources_by_type,
    get_single_resource_id,
)
from governance_checks import assert_rds_compliance, assert_secrets_are_generated
from orchestration.environment import RunEnvironment
from orchestration.orchestrator import build_graph

# ----------------------------- Resource count smoke test ------------------------

RESOURCES = [
    ResourceCountCase("Network", "AWS::EC2::VPC", 1),
    ResourceCountCase("Network", "AWS::EC2::Subnet", 4),
    ResourceCountCase("Network", "AWS::EC2::SecurityGroup", 2),
    ResourceCountCase("Network", "AWS::EC2::SecurityGroupIngress", 1),
    ResourceCountCase("Network", "AWS::EC2::VPCEndpoint", 1),
    ResourceCountCase("Network", "AWS::EC2::NatGateway", 0),
    ResourceCountCase("Secrets", "AWS::SecretsManager::Secret", 2),
    ResourceCountCase("Database", "AWS::RDS::DBInstance", 1),
    ResourceCountCase("Database", "AWS::RDS::DBParameterGroup", 1),
    ResourceCountCase("Database", "AWS::RDS::DBSubnetGroup", 1),
    ResourceCountCase("Database", "AWS::SecretsManager::SecretTargetAttachment", 1),
    ResourceCountCase("Hosting", "AWS::Amplify::App", 1),
    ResourceCountCase("Hosting", "AWS::Amplify::Branch", 1),
    ResourceCountCase("Hosting", "AWS::Amplify::Domain", 1),
]


@pytest.mark.parametrize(
    "case", RESOURCES, ids=lambda case: f"{case.stack}-{case.resource_type}"
)
def test_resource_count(deployed: DeployedApp, case: ResourceCountCase):
    deployed.template(case.stack).resource_count_is(case.resource_type, case.expected)


# ------------------- Stack wiring tests -------------------


def test_stacks_follow_group_dependencies(deployed: DeployedApp):
    stacks = deployed.provider.stacks
    assert list(stacks) == ["Network", "Secrets", "Database", "Hosting"]
    assert {stack.stack_name for stack in stacks["Database"].dependencies} == {
        "NetworkStack",
        "SecretsStack",
    }
    assert {stack.stack_name for stack in stacks["Hosting"].dependencies} >= {
        "DatabaseStack",
        "SecretsStack",
    }


def test_hosting_stack_skipped_without_token(deployed_without_hosting: DeployedApp):
    assert list(deployed_without_hosting.provider.stacks) == [
        "Network",
        "Secrets",
        "Database",
    ]
    assert deployed_without_hosting.result.warnings == [
        {"group": "Hosting", "reason": "missing precondition"}
    ]


def test_edges_added_after_declaration_become_stack_dependencies():
    def graph_with_extra_edge(environment):
        graph = build_graph(environment)
        graph.add_dependency("Secrets", "Network")
        return graph

    deployed_app = build_app(RunEnvironment(), graph_factory=graph_with_extra_edge)
    secrets_stack = deployed_app.provider.stacks["Secrets"]

    assert {stack.stack_name for stack in secrets_stack.dependencies} == {"NetworkStack"}
    assembly = deployed_app.provider.app.synth()
    artifact = assembly.get_stack_by_name("SecretsStack")
    assert "NetworkStack" in {dependency.id for dependency in artifact.dependencies}


# ------------------- Network tests -------------------


def test_vpc_properties(deployed: DeployedApp):
    deployed.template("Network").has_resource_properties(
        "AWS::EC2::VPC",
        {
            "CidrBlock": "10.0.0.0/16",
            "EnableDnsHostnames": True,
            "EnableDnsSupport": True,
            "Tags": Match.array_with([{"Key": "ManagedBy", "Value": "AWS-CDK"}]),
        },
    )


def test_database_port_open_to_hosting_only(deployed: DeployedApp):
    deployed.template("Network").has_resource_properties(
        "AWS::EC2::SecurityGroupIngress",
        {
            "IpProtocol": "tcp",
            "FromPort": 5432,
            "ToPort": 5432,
            "SourceSecurityGroupId": {
                "Fn::GetAtt": [Match.string_like_regexp(r".*HostingSG.*"), "GroupId"]
            },
        },
    )


def test_network_exports(deployed: DeployedApp):
    deployed.template("Network").has_output(
        "VpcId", {"Export": {"Name": "DashboardVpcId"}}
    )


# ------------------- Secrets tests -------------------


def test_db_credentials_secret(deployed: DeployedApp):
    template = deployed.template("Secrets")
    template.has_resource_properties(
        "AWS::SecretsManager::Secret",
        {
            "Name": "nextjs-dashboard/db-credentials",
            "GenerateSecretString": Match.object_like(
                {
                    "GenerateStringKey": "password",
                    "SecretStringTemplate": '{"username":"dashboard_admin"}',
                }
            ),
        },
    )
    assert_secrets_are_generated(template)


def test_auth_secret(deployed: DeployedApp):
    deployed.template("Secrets").has_resource_properties(
        "AWS::SecretsManager::Secret",
        {
            "Name": "nextjs-dashboard/auth-secret",
            "GenerateSecretString": Match.object_like(
                {"GenerateStringKey": "secret", "PasswordLength": 32}
            ),
        },
    )


# ------------------- Database tests -------------------


def test_db_instance_properties(deployed: DeployedApp):
    template = deployed.template("Database")
    template.has_resource_properties(
        "AWS::RDS::DBInstance",
        {
            "DBInstanceIdentifier": "nextjs-dashboard-database-instance-production",
            "DBInstanceClass": "db.t3.micro",
            "Engine": "postgres",
            "EngineVersion": "16.6",
            "DBName": "dashboard_db",
            "AllocatedStorage": "20",
            "StorageType": "gp2",
            "MultiAZ": False,
            "BackupRetentionPeriod": 7,
            "EnableCloudwatchLogsExports": ["postgresql"],
            "MonitoringInterval": 60,
            "Tags": Match.array_with([{"Key": "Database", "Value": "PostgreSQL-16"}]),
        },
    )
    assert_rds_compliance(template)


def test_db_parameter_group(deployed: DeployedApp):
    deployed.template("Database").has_resource_properties(
        "AWS::RDS::DBParameterGroup",
        {"Family": "postgres16", "Parameters": {"rds.force_ssl": "0"}},
    )


UPDATE_DELETE_POLICY_CASE = [
    UpdateDeletePolicyTestCase(
        stack="Database",
        id="AWS::RDS::DBInstance",
        update_policy="Snapshot",
        delete_policy="Snapshot",
    ),
]


@pytest.mark.parametrize("case", UPDATE_DELETE_POLICY_CASE, ids=lambda test: test.id)
def test_resource_level_policies(deployed: DeployedApp, case: UpdateDeletePolicyTestCase):
    template = deployed.template(case.stack)
    resources = find_resources_by_type(template, case.id)
    logical_id = get_single_resource_id(resources, case.id)
    json_template = template.to_json()

    assert json_template["Resources"][logical_id]["DeletionPolicy"] == case.delete_policy
    assert (
        json_template["Resources"][logical_id]["UpdateReplacePolicy"]
        == case.update_policy
    )


def test_database_exports(deployed: DeployedApp):
    template = deployed.template("Database")
    for output in ("DbEndpoint", "DbPort", "DbName"):
        template.has_output(output, {"Export": {"Name": f"Dashboard{output}"}})


# -------------------- Hosting tests ----------------------------


def test_amplify_app_properties(deployed: DeployedApp):
    deployed.template("Hosting").has_resource_properties(
        "AWS::Amplify::App",
        {
            "Name": "nextjs-dashboard",
            "Platform": "WEB_COMPUTE",
            "Repository": "https://github.com/draven/nextjs-dashboard",
            "AccessToken": "{{resolve:secretsmanager:nextjs-dashboard/github-token}}",
            "EnableBranchAutoDeletion": True,
        },
    )


ENVIRONMENT_VARIABLES = [
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_DATABASE",
    "POSTGRES_USER",
    "POSTGRES_URL",
    "POSTGRES_PRISMA_URL",
    "POSTGRES_URL_NON_POOLING",
    "DB_PASSWORD",
    "AUTH_SECRET",
]


@pytest.mark.parametrize("name", ENVIRONMENT_VARIABLES)
def test_amplify_environment_variable_present(deployed: DeployedApp, name: str):
    deployed.template("Hosting").has_resource_properties(
        "AWS::Amplify::App",
        {
            "EnvironmentVariables": Match.array_with(
                [Match.object_like({"Name": name, "Value": Match.any_value()})]
            )
        },
    )


def test_amplify_auth_url(deployed: DeployedApp):
    deployed.template("Hosting").has_resource_properties(
        "AWS::Amplify::App",
        {
            "EnvironmentVariables": Match.array_with(
                [{"Name": "AUTH_URL", "Value": "https://dashboard.draven.best/api/auth"}]
            )
        },
    )


def test_amplify_branch_properties(deployed: DeployedApp):
    deployed.template("Hosting").has_resource_properties(
        "AWS::Amplify::Branch",
        {"BranchName": "main", "Stage": "PRODUCTION", "EnableAutoBuild": True},
    )


def test_amplify_domain_properties(deployed: DeployedApp):
    deployed.template("Hosting").has_resource_properties(
        "AWS::Amplify::Domain",
        {
            "DomainName": "draven.best",
            "EnableAutoSubDomain": False,
            "SubDomainSettings": [{"BranchName": "main", "Prefix": "dashboard"}],
        },
    )


def test_amplify_role_can_read_secrets(deployed: DeployedApp):
    template = deployed.template("Hosting")
    template.has_resource_properties(
        "AWS::IAM::Role",
        {
            "AssumeRolePolicyDocument": {
                "Statement": Match.array_with(
                    [
                        Match.object_like(
                            {"Principal": {"Service": "amplify.amazonaws.com"}}
                        )
                    ]
                )
            }
        },
    )
    template.has_resource_properties(
        "AWS::IAM::Policy",
        {
            "PolicyDocument": {
                "Statement": Match.array_with(
                    [
                        Match.object_like(
                            {
                                "Action": Match.array_with(
                                    ["secretsmanager:GetSecretValue"]
                                ),
                                "Effect": "Allow",
                            }
                        )
                    ]
                )
            }
        },
    )
