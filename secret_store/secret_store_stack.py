import json
from typing import Any

from aws_cdk import Stack, aws_rds as rds, aws_secretsmanager as secretsmanager
from constructs import Construct

from common import constants
from common.stack_context import StackContext
from orchestration.secret_ref import SecretRef


class SecretStoreStack(Stack):
    """Generated credentials for the database and the auth layer.

    Only the secret ARNs leave this stack; values are generated and read by
    AWS at deploy and run time.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        username: str = constants.DB_USERNAME,
        credentials_secret_name: str = constants.DB_CREDENTIALS_SECRET_NAME,
        auth_secret_name: str = constants.AUTH_SECRET_NAME,
        exclude_characters: str = constants.SECRET_EXCLUDE_CHARACTERS,
        auth_secret_length: int = constants.AUTH_SECRET_LENGTH,
        environment_name: str = constants.DEFAULT_ENV,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, env=environment_name, component="secrets")

        self.db_credentials = rds.DatabaseSecret(
            self,
            self.context.build_resource_id("DbCredentials"),
            username=username,
            secret_name=credentials_secret_name,
            exclude_characters=exclude_characters,
        )
        self.auth_secret = secretsmanager.Secret(
            self,
            self.context.build_resource_id("AuthSecret"),
            secret_name=auth_secret_name,
            description="NextAuth authentication secret",
            generate_secret_string=secretsmanager.SecretStringGenerator(
                secret_string_template=json.dumps({"username": "auth"}),
                generate_string_key="secret",
                exclude_characters=exclude_characters,
                password_length=auth_secret_length,
            ),
        )

        self.context.add_output(
            "DbCredentialsArn",
            self.db_credentials.secret_arn,
            "Database credentials secret ARN",
        )
        self.context.add_output(
            "AuthSecretArn", self.auth_secret.secret_arn, "NextAuth secret ARN"
        )

    @property
    def outputs(self) -> dict[str, Any]:
        return {
            "credentialLocator": SecretRef(self.db_credentials.secret_arn),
            "authSecretLocator": SecretRef(self.auth_secret.secret_arn),
        }
