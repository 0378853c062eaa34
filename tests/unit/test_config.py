"""Tests for controller settings."""

import pytest

from alb_reconciler.config import ControllerSettings
from alb_reconciler.exceptions import ValidationError

ENV_VARS = (
    "CLUSTER_NAME",
    "INGRESS_CLASS",
    "AWS_REGION",
    "AWS_ENDPOINT_URL",
    "AWS_DEBUG",
    "AWS_MAX_RETRIES",
    "SYNC_INTERVAL",
    "MAX_CONCURRENCY",
    "CONVERGE_TIMEOUT",
    "DISPATCH_DEADLINE",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "PORT",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestControllerSettings:
    def test_defaults(self):
        settings = ControllerSettings(cluster_name="prod")
        assert settings.ingress_class == ""
        assert settings.max_retries == 15
        assert settings.sync_interval == 30.0
        assert settings.max_concurrency == 10
        assert settings.converge_timeout == 300.0
        assert settings.dispatch_deadline is None
        assert settings.log_level == "INFO"
        assert settings.log_format == "text"

    def test_log_level_is_normalized(self):
        assert ControllerSettings(cluster_name="prod", log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"cluster_name": ""},
            {"cluster_name": "much-too-long-name"},
            {"cluster_name": "prod", "log_level": "TRACE"},
            {"cluster_name": "prod", "log_format": "xml"},
            {"cluster_name": "prod", "sync_interval": 0},
            {"cluster_name": "prod", "max_concurrency": -1},
            {"cluster_name": "prod", "max_retries": -1},
            {"cluster_name": "prod", "converge_timeout": 0},
            {"cluster_name": "prod", "dispatch_deadline": -5},
            {"cluster_name": "prod", "port": 0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            ControllerSettings(**kwargs)

    def test_zero_concurrency_means_unbounded(self):
        assert ControllerSettings(cluster_name="prod", max_concurrency=0).max_concurrency == 0


class TestFromEnv:
    def test_reads_environment(self, clean_env):
        clean_env.setenv("CLUSTER_NAME", "prod")
        clean_env.setenv("INGRESS_CLASS", "alb")
        clean_env.setenv("AWS_REGION", "eu-west-1")
        clean_env.setenv("AWS_ENDPOINT_URL", "http://localhost:4566")
        clean_env.setenv("AWS_DEBUG", "true")
        clean_env.setenv("AWS_MAX_RETRIES", "3")
        clean_env.setenv("SYNC_INTERVAL", "5")
        clean_env.setenv("MAX_CONCURRENCY", "2")
        clean_env.setenv("CONVERGE_TIMEOUT", "60")
        clean_env.setenv("DISPATCH_DEADLINE", "120")
        clean_env.setenv("LOG_LEVEL", "warning")
        clean_env.setenv("LOG_FORMAT", "json")
        clean_env.setenv("PORT", "9090")

        settings = ControllerSettings.from_env()

        assert settings.cluster_name == "prod"
        assert settings.ingress_class == "alb"
        assert settings.region == "eu-west-1"
        assert settings.endpoint_url == "http://localhost:4566"
        assert settings.aws_debug is True
        assert settings.max_retries == 3
        assert settings.sync_interval == 5.0
        assert settings.max_concurrency == 2
        assert settings.converge_timeout == 60.0
        assert settings.dispatch_deadline == 120.0
        assert settings.log_level == "WARNING"
        assert settings.log_format == "json"
        assert settings.port == 9090

    def test_defaults_from_empty_environment(self, clean_env):
        clean_env.setenv("CLUSTER_NAME", "prod")
        settings = ControllerSettings.from_env()
        assert settings.region is None
        assert settings.aws_debug is False
        assert settings.dispatch_deadline is None

    def test_missing_cluster_name(self, clean_env):
        with pytest.raises(ValidationError, match="must be defined"):
            ControllerSettings.from_env()

    def test_bad_number(self, clean_env):
        clean_env.setenv("CLUSTER_NAME", "prod")
        clean_env.setenv("MAX_CONCURRENCY", "many")
        with pytest.raises(ValidationError, match="MAX_CONCURRENCY"):
            ControllerSettings.from_env()
