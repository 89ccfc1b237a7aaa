"""OpenShift route manifest for the LokiStack gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

__all__ = [
    "RouteOptions",
    "route_name",
    "build_route",
    "ANNOTATION_GATEWAY_ROUTE_TIMEOUT",
    "ROUTE_API_VERSION",
    "TLS_TERMINATION_REENCRYPT",
    "WILDCARD_POLICY_NONE",
]

ANNOTATION_GATEWAY_ROUTE_TIMEOUT = "haproxy.router.openshift.io/timeout"
ROUTE_API_VERSION = "route.openshift.io/v1"
TLS_TERMINATION_REENCRYPT = "reencrypt"
WILDCARD_POLICY_NONE = "None"


@dataclass
class RouteOptions:
    """What the gateway route is built from."""

    lokistack_name: str
    lokistack_namespace: str
    gateway_svc_name: str
    gateway_svc_target_port: str
    gateway_route_timeout: timedelta = timedelta(0)
    labels: dict[str, str] = field(default_factory=dict)


def route_name(opts: RouteOptions) -> str:
    """The route carries the name of its LokiStack."""
    return opts.lokistack_name


def build_route(opts: RouteOptions) -> dict[str, Any]:
    """Build the Route object for the gateway service as a manifest dict."""
    seconds = opts.gateway_route_timeout.total_seconds()
    return {
        "apiVersion": ROUTE_API_VERSION,
        "kind": "Route",
        "metadata": {
            "name": route_name(opts),
            "namespace": opts.lokistack_namespace,
            "labels": dict(opts.labels),
            "annotations": {ANNOTATION_GATEWAY_ROUTE_TIMEOUT: f"{seconds:.0f}s"},
        },
        "spec": {
            "to": {
                "kind": "Service",
                "name": opts.gateway_svc_name,
                "weight": 100,
            },
            "port": {"targetPort": opts.gateway_svc_target_port},
            "tls": {"termination": TLS_TERMINATION_REENCRYPT},
            "wildcardPolicy": WILDCARD_POLICY_NONE,
        },
    }