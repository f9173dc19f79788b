import pytest

from fndeploy.internal import constants
from fndeploy.internal.config import Settings
from fndeploy.kernel.errors import ValidationError

ENV_VARS = (
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "AWS_PROFILE",
    "AWS_ENDPOINT_URL",
    "FNDEPLOY_MAX_WAIT_SECONDS",
    "FNDEPLOY_POLL_INTERVAL_SECONDS",
    "FNDEPLOY_READ_RETRIES",
    "FNDEPLOY_RETRY_BACKOFF_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment():
    settings = Settings.from_env()
    assert settings.region is None
    assert settings.max_wait_seconds == constants.DEFAULT_MAX_WAIT_SECONDS
    assert settings.poll_interval_seconds == constants.DEFAULT_POLL_INTERVAL_SECONDS
    assert settings.read_retries == constants.DEFAULT_READ_RETRIES


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    monkeypatch.setenv("AWS_ENDPOINT_URL", "http://localhost:4566")
    monkeypatch.setenv("FNDEPLOY_MAX_WAIT_SECONDS", "60")
    monkeypatch.setenv("FNDEPLOY_READ_RETRIES", "5")

    settings = Settings.from_env()
    assert settings.region == "eu-west-1"
    assert settings.endpoint_url == "http://localhost:4566"
    assert settings.max_wait_seconds == 60.0
    assert settings.read_retries == 5


def test_aws_region_wins_over_default_region(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "us-west-2")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    assert Settings.from_env().region == "us-west-2"


@pytest.mark.parametrize("name, value", [
    ("FNDEPLOY_MAX_WAIT_SECONDS", "soon"),
    ("FNDEPLOY_READ_RETRIES", "2.5"),
])
def test_malformed_values_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError, match=name):
        Settings.from_env()


def test_poll_interval_must_be_positive(monkeypatch):
    monkeypatch.setenv("FNDEPLOY_POLL_INTERVAL_SECONDS", "0")
    with pytest.raises(ValidationError, match="greater than zero"):
        Settings.from_env()
