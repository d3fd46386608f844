"""Unit tests for deployment context resolution."""

from unittest.mock import patch

import pytest

from infrastructure.context import DEFAULT_REGION, DeploymentContext
from infrastructure.errors import ConfigurationError

ENV_VARS = (
    "STAGE",
    "INFRA_TIER",
    "PROJECT_NAME",
    "CDK_DEFAULT_REGION",
    "CDK_DEFAULT_ACCOUNT",
    "AWS_REGION",
    "SECONDARY_REGIONS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from the caller's environment and any .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    with patch("infrastructure.context.load_dotenv"):
        yield


def test_from_env_defaults():
    """Test that an empty environment resolves to dev on the small tier."""
    context = DeploymentContext.from_env()

    assert context.project_name == "webapp"
    assert context.environment == "development"
    assert context.tier == "small"
    assert context.region == DEFAULT_REGION
    assert context.account is None
    assert context.stack_name == "webapp-development"


@pytest.mark.parametrize(
    "stage,environment,tier",
    [
        ("dev", "development", "small"),
        ("staging", "staging", "medium"),
        ("prod-small", "production", "small"),
        ("prod-medium", "production", "medium"),
        ("prod-large", "production", "large"),
    ],
)
def test_stage_mapping(monkeypatch, stage, environment, tier):
    """Test that each stage maps to an environment and tier."""
    monkeypatch.setenv("STAGE", stage)

    context = DeploymentContext.from_env()

    assert context.environment == environment
    assert context.tier == tier


def test_unknown_stage_raises(monkeypatch):
    """Test that an unknown stage is rejected."""
    monkeypatch.setenv("STAGE", "qa")

    with pytest.raises(ConfigurationError, match="Unknown stage"):
        DeploymentContext.from_env()


def test_cdk_context_wins_over_environment(monkeypatch):
    """Test that CDK context values take precedence."""
    monkeypatch.setenv("STAGE", "dev")
    monkeypatch.setenv("PROJECT_NAME", "from-env")

    context = DeploymentContext.from_env({"stage": "prod-large", "project": "acme"})

    assert context.project_name == "acme"
    assert context.tier == "large"


def test_tier_override(monkeypatch):
    """Test that INFRA_TIER overrides the stage's tier."""
    monkeypatch.setenv("STAGE", "staging")
    monkeypatch.setenv("INFRA_TIER", "large")

    context = DeploymentContext.from_env()

    assert context.environment == "staging"
    assert context.tier == "large"


def test_invalid_tier_raises(monkeypatch):
    """Test that an unknown tier is rejected."""
    monkeypatch.setenv("INFRA_TIER", "huge")

    with pytest.raises(ConfigurationError) as exc_info:
        DeploymentContext.from_env()

    assert exc_info.value.field == "tier"


def test_region_and_account(monkeypatch):
    """Test region fallback to AWS_REGION and account lookup."""
    monkeypatch.setenv("AWS_REGION", "eu-west-1")
    monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "123456789012")

    context = DeploymentContext.from_env()

    assert context.region == "eu-west-1"
    assert context.account == "123456789012"


def test_secondary_regions_are_split(monkeypatch):
    """Test comma-separated secondary regions."""
    monkeypatch.setenv("SECONDARY_REGIONS", "us-west-2, eu-west-1,")

    context = DeploymentContext.from_env()

    assert context.secondary_regions == ("us-west-2", "eu-west-1")


def test_created_at_is_a_date(context):
    """Test the CreatedAt tag format."""
    assert context.created_at == "2024-05-01"
