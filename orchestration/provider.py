from typing import Any, Mapping, Protocol

from orchestration.resource_group import ResourceGroup


class ResourceProvider(Protocol):
    """Turns a resource group's resolved inputs into its outputs.

    Outputs must be available as soon as ``provision`` returns. Failures are
    raised as ``ProvisioningError`` (any other exception is wrapped into one).
    """

    def provision(self, group: ResourceGroup, inputs: Mapping[str, Any]) -> Mapping[str, Any]:
        ...
