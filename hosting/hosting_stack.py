from typing import Any, Mapping, Optional, Sequence

from aws_cdk import (
    Stack,
    aws_amplify as amplify,
    aws_iam as iam,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from common import constants
from common.stack_context import StackContext
from orchestration.secret_ref import SecretRef


class HostingStack(Stack):
    """Amplify SSR hosting for the dashboard.

    Sensitive environment variables arrive as deferred secret markers, which
    Amplify resolves at build and run time.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        repository: str,
        access_token: str,
        environment_variables: Mapping[str, str],
        readable_secrets: Sequence[SecretRef] = (),
        app_name: str = constants.HOSTING_APP_NAME,
        branch_name: str = constants.DEFAULT_BRANCH,
        custom_domain: Optional[str] = None,
        environment_name: str = constants.DEFAULT_ENV,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, env=environment_name, component="hosting")
        owner, _, name = repository.partition("/")
        if not owner or not name:
            raise ValueError(
                f"Repository {repository!r} must be given as 'owner/repository'"
            )

        self.service_role = self._build_service_role(readable_secrets)
        self.amplify_app = amplify.CfnApp(
            self,
            self.context.build_resource_id("App"),
            name=app_name,
            description="Next.js Dashboard",
            repository=f"https://github.com/{owner}/{name}",
            access_token=access_token,
            platform=constants.HOSTING_PLATFORM,
            iam_service_role=self.service_role.role_arn,
            enable_branch_auto_deletion=True,
            environment_variables=[
                amplify.CfnApp.EnvironmentVariableProperty(name=key, value=value)
                for key, value in environment_variables.items()
            ],
        )
        self.main_branch = amplify.CfnBranch(
            self,
            self.context.build_resource_id("Branch"),
            app_id=self.amplify_app.attr_app_id,
            branch_name=branch_name,
            enable_auto_build=True,
            stage=constants.HOSTING_STAGE,
        )
        if custom_domain:
            self._build_domain(custom_domain, branch_name)

        self.context.add_output("AmplifyAppId", self.amplify_app.attr_app_id, "Amplify App ID")
        self.context.add_output(
            "AmplifyDefaultDomain",
            self.amplify_app.attr_default_domain,
            "Amplify default domain",
            export=False,
        )
        self.context.add_output(
            "BranchName", self.main_branch.attr_branch_name, "Main branch name", export=False
        )

    @property
    def outputs(self) -> dict[str, Any]:
        return {
            "appId": self.amplify_app.attr_app_id,
            "defaultDomain": self.amplify_app.attr_default_domain,
            "branchName": self.main_branch.attr_branch_name,
        }

    def _build_service_role(self, readable_secrets: Sequence[SecretRef]) -> iam.Role:
        role = iam.Role(
            self,
            self.context.build_resource_id("Role", action="secrets"),
            assumed_by=iam.ServicePrincipal("amplify.amazonaws.com"),
            description="Role for Amplify to access secrets",
        )
        for index, ref in enumerate(readable_secrets):
            secret = secretsmanager.Secret.from_secret_complete_arn(
                self, self.context.build_resource_id(f"Secret{index}"), ref.locator
            )
            secret.grant_read(role)
        return role

    def _build_domain(self, custom_domain: str, branch_name: str) -> amplify.CfnDomain:
        domain = amplify.CfnDomain(
            self,
            self.context.build_resource_id("Domain"),
            app_id=self.amplify_app.attr_app_id,
            domain_name=custom_domain,
            enable_auto_sub_domain=False,
            sub_domain_settings=[
                amplify.CfnDomain.SubDomainSettingProperty(
                    branch_name=branch_name, prefix=constants.HOSTING_SUBDOMAIN
                )
            ],
        )
        domain.add_dependency(self.main_branch)
        self.context.add_output(
            "CustomDomain",
            f"https://{constants.HOSTING_SUBDOMAIN}.{custom_domain}",
            "Custom domain URL",
            export=False,
        )
        return domain
