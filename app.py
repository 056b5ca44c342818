#!/usr/bin/env python3
"""AWS CDK entrypoint for provisioning the Next.js dashboard infrastructure.

The orchestrator declares the network, secrets, database and hosting groups in
dependency order and hands each one to the CDK provider, which turns it into a
stack. The hosting stack is only declared when a GitHub token is available
(``GITHUB_TOKEN`` or the ``githubToken`` context value); otherwise a warning
is logged and the other stacks are synthesized on their own.
"""
import os

import aws_cdk as cdk
from aws_cdk import Environment

from deployment.cdk_provider import CdkResourceProvider
from orchestration.environment import RunEnvironment
from orchestration.orchestrator import Orchestrator

app = cdk.App()

run_environment = RunEnvironment.from_sources(os.environ, app.node.try_get_context)

env = Environment(
    account=run_environment.account,
    region=run_environment.region,
)

provider = CdkResourceProvider(
    app, env=env, environment_name=run_environment.environment_name
)
result = Orchestrator(provider).run(run_environment)
provider.apply_tags(result)

app.synth()
