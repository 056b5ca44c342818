from attrs import define, field
from aws_cdk import CfnOutput, Stack
from typing import Optional

import common.constants as constants


@define(slots=True, frozen=True)
class StackContext:
    scope: Stack
    env: str = field(
        default=constants.DEFAULT_ENV,
        metadata={"description": "Deployment environment name"},
    )
    service: str = field(default=constants.SERVICE_NAME, init=False)
    component: str = field(default="")

    # ---------- naming ----------
    def build_resource_name(
        self, resource_type: str, action: Optional[str] = None
    ) -> str:
        """Build resource name with optional action.

        Examples:
            - Without action: nextjs-dashboard-database-instance-production
            - With action: nextjs-dashboard-hosting-read-role-production
        """
        parts = [self.service, self.component, action, resource_type, self.env]
        return "-".join(part for part in parts if part).lower()

    def build_resource_id(self, resource_type: str, action: Optional[str] = None) -> str:
        """Build resource ID with optional action.

        Examples:
            - Without action: DatabaseInstance
            - With action: HostingReadRole
        """
        parts = [self.component, action, resource_type]
        return "".join(part[:1].upper() + part[1:] for part in parts if part)

    def build_export_name(self, output: str) -> str:
        """Examples: DashboardDbEndpoint, DashboardVpcId"""
        return f"Dashboard{output}"

    # ---------- outputs ----------
    def add_output(
        self, output_id: str, value: str, description: str, export: bool = True
    ) -> CfnOutput:
        return CfnOutput(
            self.scope,
            output_id,
            value=value,
            description=description,
            export_name=self.build_export_name(output_id) if export else None,
        )
