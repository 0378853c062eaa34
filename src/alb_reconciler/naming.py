"""Load balancer naming convention.

Maps an ingress identity to the name and tags of the load balancer that
serves it, and maps a discovered load balancer back to its identity.

Names must satisfy the ELBv2 rules:
- Alphanumeric characters and hyphens only
- Must not begin or end with a hyphen
- Maximum 32 characters

The canonical name is ``{cluster}-{digest}`` where ``digest`` is the first
20 hex characters of the SHA-256 of ``namespace/name``. With the 11
character cluster limit this is at most 32 characters. The digest is not
invertible, so the identity is carried by the namespace and ingress-name
tags, which are.
"""

import hashlib
import re
from collections.abc import Mapping

from .exceptions import ValidationError
from .models import Identity

MAX_CLUSTER_NAME_LENGTH = 11
"""Leaves room for ``-`` plus the 20-character digest within 32 characters."""

DIGEST_LENGTH = 20

# Tag keys carried by every load balancer this controller creates
CLUSTER_TAG_KEY = "alb-reconciler:cluster"
NAMESPACE_TAG_KEY = "kubernetes.io/namespace"
INGRESS_NAME_TAG_KEY = "kubernetes.io/ingress-name"
MANAGED_BY_TAG_KEY = "ManagedBy"
MANAGED_BY_TAG_VALUE = "alb-reconciler"

CLUSTER_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")


def validate_cluster_name(name: str) -> None:
    """
    Validate a cluster name.

    Args:
        name: The user-provided cluster name

    Raises:
        ValidationError: If the name is empty, too long, or has invalid characters
    """
    if not name:
        raise ValidationError("cluster name", name, "A cluster name must be defined")

    if not CLUSTER_NAME_PATTERN.match(name):
        raise ValidationError(
            "cluster name",
            name,
            "Must start with a letter and contain only alphanumeric characters and hyphens.",
        )

    if name.endswith("-"):
        raise ValidationError("cluster name", name, "Must not end with a hyphen.")

    if len(name) > MAX_CLUSTER_NAME_LENGTH:
        raise ValidationError(
            "cluster name",
            name,
            f"Cluster name must be {MAX_CLUSTER_NAME_LENGTH} characters or less",
        )


def name_prefix(cluster: str) -> str:
    return f"{cluster}-"


def load_balancer_name(cluster: str, identity: Identity) -> str:
    """Canonical load balancer name for an identity."""
    digest = hashlib.sha256(str(identity).encode()).hexdigest()[:DIGEST_LENGTH]
    return f"{name_prefix(cluster)}{digest}"


def load_balancer_tags(
    cluster: str,
    identity: Identity,
    extra: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Tags recorded on a load balancer; ownership tags win over ``extra``."""
    tags = dict(extra or {})
    tags.update(
        {
            CLUSTER_TAG_KEY: cluster,
            NAMESPACE_TAG_KEY: identity.namespace,
            INGRESS_NAME_TAG_KEY: identity.name,
            MANAGED_BY_TAG_KEY: MANAGED_BY_TAG_VALUE,
        }
    )
    return tags


def belongs_to_cluster(cluster: str, name: str, tags: Mapping[str, str]) -> bool:
    """True if a load balancer is part of this cluster's fleet."""
    return name.startswith(name_prefix(cluster)) and tags.get(CLUSTER_TAG_KEY) == cluster


def identity_from_tags(tags: Mapping[str, str]) -> Identity | None:
    """
    Recover the owning identity from load balancer tags.

    Returns:
        The identity, or ``None`` if either identity tag is missing or empty.
    """
    namespace = tags.get(NAMESPACE_TAG_KEY)
    name = tags.get(INGRESS_NAME_TAG_KEY)
    if not namespace or not name:
        return None
    return Identity(namespace=namespace, name=name)
