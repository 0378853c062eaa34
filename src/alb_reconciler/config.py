"""Controller configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .concurrency import DEFAULT_MAX_CONCURRENCY
from .dispatcher import DEFAULT_CONVERGE_TIMEOUT
from .exceptions import ValidationError
from .infra.client import DEFAULT_MAX_RETRIES
from .naming import validate_cluster_name

LOG_FORMATS = ("text", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(name, raw, "must be a number") from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(name, raw, "must be an integer") from None


@dataclass
class ControllerSettings:
    """
    Settings for one controller process.

    Attributes:
        cluster_name: Cluster owning the load balancer fleet (max 11 chars)
        ingress_class: Only manage ingresses of this class (empty = all)
        region: AWS region (default: use boto3 defaults)
        endpoint_url: ELBv2 endpoint override (for LocalStack)
        aws_debug: Log botocore requests
        max_retries: botocore retry attempts per API call
        sync_interval: Seconds between reconciliation cycles
        max_concurrency: Cap on concurrent discovery/convergence tasks (0 = unbounded)
        converge_timeout: Per-entity convergence time limit in seconds
        dispatch_deadline: Overall dispatch time limit in seconds (None = no limit)
        log_level: Root log level
        log_format: ``text`` or ``json``
        port: HTTP port for /state, /metrics and /healthz
    """

    cluster_name: str
    ingress_class: str = ""
    region: str | None = None
    endpoint_url: str | None = None
    aws_debug: bool = False
    max_retries: int = DEFAULT_MAX_RETRIES
    sync_interval: float = 30.0
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    converge_timeout: float | None = DEFAULT_CONVERGE_TIMEOUT
    dispatch_deadline: float | None = None
    log_level: str = "INFO"
    log_format: str = "text"
    port: int = 8080

    def __post_init__(self) -> None:
        validate_cluster_name(self.cluster_name)
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ValidationError("log level", self.log_level, f"must be one of {LOG_LEVELS}")
        if self.log_format not in LOG_FORMATS:
            raise ValidationError("log format", self.log_format, f"must be one of {LOG_FORMATS}")
        if self.sync_interval <= 0:
            raise ValidationError("sync interval", self.sync_interval, "must be positive")
        if self.max_concurrency < 0:
            raise ValidationError("max concurrency", self.max_concurrency, "must be >= 0")
        if self.max_retries < 0:
            raise ValidationError("max retries", self.max_retries, "must be >= 0")
        if self.converge_timeout is not None and self.converge_timeout <= 0:
            raise ValidationError("converge timeout", self.converge_timeout, "must be positive")
        if self.dispatch_deadline is not None and self.dispatch_deadline <= 0:
            raise ValidationError("dispatch deadline", self.dispatch_deadline, "must be positive")
        if not 0 < self.port < 65536:
            raise ValidationError("port", self.port, "must be between 1 and 65535")

    @classmethod
    def from_env(cls) -> ControllerSettings:
        """Create settings from environment variables."""
        return cls(
            cluster_name=os.environ.get("CLUSTER_NAME", ""),
            ingress_class=os.environ.get("INGRESS_CLASS", ""),
            region=os.environ.get("AWS_REGION") or None,
            endpoint_url=os.environ.get("AWS_ENDPOINT_URL") or None,
            aws_debug=os.environ.get("AWS_DEBUG", "").lower() in _TRUE_VALUES,
            max_retries=_env_int("AWS_MAX_RETRIES", DEFAULT_MAX_RETRIES),
            sync_interval=_env_float("SYNC_INTERVAL", 30.0) or 0.0,
            max_concurrency=_env_int("MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY),
            converge_timeout=_env_float("CONVERGE_TIMEOUT", DEFAULT_CONVERGE_TIMEOUT),
            dispatch_deadline=_env_float("DISPATCH_DEADLINE", None),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_format=os.environ.get("LOG_FORMAT", "text"),
            port=_env_int("PORT", 8080),
        )
