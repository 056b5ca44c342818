from typing import Any, Callable, Mapping, Optional

from attrs import Factory, define, field
from attrs.validators import deep_iterable, instance_of, min_len, optional

import common.constants as constants

ContextLookup = Callable[[str], Any]


def _tag_pairs(value: Any) -> tuple[tuple[str, str], ...]:
    items = value.items() if isinstance(value, Mapping) else value
    return tuple((str(key), str(val)) for key, val in items)


def _default_tags(environment: "RunEnvironment") -> tuple[tuple[str, str], ...]:
    """Default tag set with the Environment tag following ``environment_name``."""
    label = environment.environment_name.capitalize()
    return tuple(
        (key, label if key == constants.ENVIRONMENT_TAG_KEY else value)
        for key, value in constants.DEFAULT_TAGS
    )


@define(slots=True, frozen=True)
class RunEnvironment:
    """Per-invocation configuration, fixed before the graph is built.

    Only the presence of the source control token is recorded; the token
    itself is read by the hosting platform from the secret store.
    """

    region: str = field(
        default=constants.DEFAULT_REGION, validator=[instance_of(str), min_len(1)]
    )
    account: Optional[str] = field(default=None, validator=optional(instance_of(str)))
    repository: Optional[str] = field(
        default=None, validator=optional(instance_of(str))
    )
    source_credential_present: bool = field(default=False, validator=instance_of(bool))
    branch: str = field(
        default=constants.DEFAULT_BRANCH, validator=[instance_of(str), min_len(1)]
    )
    environment_name: str = field(
        default=constants.DEFAULT_ENV,
        validator=instance_of(str),
        metadata={"description": "Deployment environment name"},
    )
    custom_domain: Optional[str] = field(
        default=None, validator=optional(instance_of(str))
    )
    tags: tuple[tuple[str, str], ...] = field(
        default=Factory(_default_tags, takes_self=True), converter=_tag_pairs
    )
    extra_preconditions: frozenset[str] = field(
        factory=frozenset,
        converter=frozenset,
        validator=deep_iterable(member_validator=instance_of(str)),
    )

    @property
    def satisfied_preconditions(self) -> frozenset[str]:
        satisfied = set(self.extra_preconditions)
        if self.source_credential_present:
            satisfied.add(constants.SOURCE_CREDENTIAL)
        return frozenset(satisfied)

    @property
    def repository_or_default(self) -> str:
        return self.repository or constants.DEFAULT_REPOSITORY

    @classmethod
    def from_sources(
        cls,
        environ: Mapping[str, str],
        context_lookup: Optional[ContextLookup] = None,
    ) -> "RunEnvironment":
        """Read configuration from environment variables, then CDK context.

        Examples:
            - GITHUB_TOKEN set (any value) -> source_credential_present=True
            - GITHUB_REPO unset, context githubRepo="me/app" -> repository="me/app"
        """

        def lookup(variable: str, context_key: str) -> Optional[str]:
            value = environ.get(variable)
            if not value and context_lookup is not None:
                value = context_lookup(context_key)
            return str(value) if value else None

        return cls(
            region=lookup("DEPLOY_REGION", "region") or constants.DEFAULT_REGION,
            account=lookup("CDK_DEFAULT_ACCOUNT", "account"),
            repository=lookup("GITHUB_REPO", "githubRepo"),
            source_credential_present=lookup("GITHUB_TOKEN", "githubToken") is not None,
            branch=lookup("BRANCH_NAME", "branchName") or constants.DEFAULT_BRANCH,
            environment_name=lookup("DEPLOY_ENVIRONMENT", "environment")
            or constants.DEFAULT_ENV,
            custom_domain=lookup("CUSTOM_DOMAIN", "customDomain"),
        )
