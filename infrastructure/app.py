#!/usr/bin/env python3
"""
CDK Application for the tiered web application infrastructure.

Deploys the small, medium or large tier stack for a stage and writes the
resource files (application config, infrastructure summary, raw dump and
README) after synthesis.

Usage:
    cdk synth --context stage=dev
    cdk deploy --context stage=prod-medium
    cdk deploy --context stage=prod-large --context secondary_regions=us-west-2
    cdk destroy --context stage=dev

Stages: dev, staging, prod-small, prod-medium, prod-large (default: dev)
"""

import logging
import os

from aws_cdk import App, Environment, Tags

from infrastructure.context import DeploymentContext
from infrastructure.stacks import STACKS, get_tier_settings

CONTEXT_KEYS = ("stage", "tier", "project", "region", "account", "secondary_regions")

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize CDK app
app = App()

# Resolve stage, tier, project and target environment
deployment = DeploymentContext.from_env(
    {key: app.node.try_get_context(key) for key in CONTEXT_KEYS}
)

aws_env = Environment(
    account=deployment.account,
    region=deployment.region,
)

print(f"Deploying project: {deployment.project_name}")
print(f"Environment: {deployment.environment} (tier: {deployment.tier})")
print(f"AWS Account: {deployment.account}")
print(f"AWS Region: {deployment.region}")

# ============================================================================
# Deploy the tier stack
# ============================================================================

settings = get_tier_settings(deployment.tier)
stack_class = STACKS[deployment.tier]
stack = stack_class(
    app,
    deployment.stack_name,
    env=aws_env,
    context=deployment,
    settings=settings,
    description=f"{deployment.project_name} {deployment.tier} tier - {deployment.environment}",
)

# ============================================================================
# Add Common Tags
# ============================================================================

Tags.of(app).add("ManagedBy", "CDK")
Tags.of(app).add("Tier", deployment.tier)

# ============================================================================
# Synthesize CloudFormation Templates
# ============================================================================

app.synth()

# Write resource files once the template is final
stack.recorder.save_to_files(os.getenv("RESOURCE_INFO_DIR"))
