"""Identity derivation and ingress class filtering."""

from .models import Identity, IngressSpec

INGRESS_CLASS_ANNOTATION = "kubernetes.io/ingress.class"


def identity_of(spec: IngressSpec) -> Identity:
    """Stable identity of an ingress: its namespace and name."""
    return Identity(namespace=spec.namespace, name=spec.name)


def is_managed(spec: IngressSpec, ingress_class: str) -> bool:
    """
    Check whether this controller may manage an ingress.

    With an empty ``ingress_class`` every ingress is managed. Otherwise the
    ingress's class annotation must equal it exactly (case-sensitive).
    """
    if not ingress_class:
        return True
    return spec.annotations.get(INGRESS_CLASS_ANNOTATION) == ingress_class
