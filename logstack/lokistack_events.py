"""Event filters, request mapping and annotation updates for LokiStack reconciliation."""

from __future__ import annotations

import dataclasses
import random
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

__all__ = [
    "ConflictError",
    "ObjectRef",
    "LokiStack",
    "CreateEvent",
    "UpdateEvent",
    "DeleteEvent",
    "GenericEvent",
    "create_or_update_only",
    "update_or_delete_only",
    "update_or_delete_with_status",
    "create_update_or_delete",
    "enqueue_all",
    "enqueue_for_alertmanager_services",
    "enqueue_for_storage_secret",
    "enqueue_for_storage_ca",
    "update_annotation",
    "remove_annotation",
    "MONITORING_SVC_OPERATED",
    "MONITORING_USER_WORKLOAD_NS",
    "MONITORING_NS",
    "MODE_OPENSHIFT_LOGGING",
    "MODE_OPENSHIFT_NETWORK",
]

MONITORING_SVC_OPERATED = "alertmanager-operated"
MONITORING_USER_WORKLOAD_NS = "openshift-user-workload-monitoring"
MONITORING_NS = "openshift-monitoring"
MODE_OPENSHIFT_LOGGING = "openshift-logging"
MODE_OPENSHIFT_NETWORK = "openshift-network"

_RETRY_STEPS = 5
_RETRY_DELAY_SEC = 0.01
_RETRY_JITTER = 0.1
_STATUS_KINDS = frozenset({"Deployment", "StatefulSet"})


class ConflictError(Exception):
    """The object was modified concurrently; the update must be retried."""


@dataclass
class ObjectRef:
    """A watched cluster object, reduced to the fields the filters look at."""

    kind: str
    name: str = ""
    namespace: str = ""
    generation: int = 0
    resource_version: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    status: Any = None


@dataclass
class LokiStack:
    """The parts of a LokiStack resource needed to map and annotate it."""

    name: str
    namespace: str
    annotations: dict[str, str] | None = field(default_factory=dict)
    tenants_mode: str | None = None
    storage_secret_name: str = ""
    storage_ca: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.namespace, self.name)


@dataclass
class CreateEvent:
    obj: ObjectRef


@dataclass
class UpdateEvent:
    old: ObjectRef
    new: ObjectRef


@dataclass
class DeleteEvent:
    obj: ObjectRef
    delete_state_unknown: bool = False


@dataclass
class GenericEvent:
    obj: ObjectRef


def _status_different(event: UpdateEvent) -> bool:
    if event.old.kind in _STATUS_KINDS:
        return event.old.status != event.new.status
    return False


def create_or_update_only(event: Any) -> bool:
    """Accept creations and updates that change generation or annotations."""
    if isinstance(event, UpdateEvent):
        return (
            event.old.generation != event.new.generation
            or event.old.annotations != event.new.annotations
        )
    return isinstance(event, CreateEvent)


def update_or_delete_only(event: Any) -> bool:
    """Accept spec updates (any update of a Proxy) and confirmed deletions."""
    if isinstance(event, UpdateEvent):
        if event.old.kind == "Proxy":
            return True
        return event.old.generation != event.new.generation
    if isinstance(event, DeleteEvent):
        return not event.delete_state_unknown
    return False


def update_or_delete_with_status(event: Any) -> bool:
    """Like update_or_delete_only, but also status changes of workloads."""
    if isinstance(event, UpdateEvent):
        return event.old.generation != event.new.generation or _status_different(event)
    if isinstance(event, DeleteEvent):
        return not event.delete_state_unknown
    return False


def create_update_or_delete(event: Any) -> bool:
    """Accept creations, deletions and updates with a new resource version."""
    if isinstance(event, UpdateEvent):
        return event.old.resource_version != event.new.resource_version
    return isinstance(event, (CreateEvent, DeleteEvent))


def enqueue_all(stacks: Iterable[LokiStack]) -> list[tuple[str, str]]:
    """Reconcile requests (namespace, name) for every stack."""
    return [stack.key for stack in stacks]


def enqueue_for_alertmanager_services(
    stacks: Iterable[LokiStack], obj: ObjectRef
) -> list[tuple[str, str]]:
    """Requests for OpenShift-mode stacks when a monitoring Alertmanager service changes."""
    if obj.name != MONITORING_SVC_OPERATED or obj.namespace not in (
        MONITORING_USER_WORKLOAD_NS,
        MONITORING_NS,
    ):
        return []
    return [
        stack.key
        for stack in stacks
        if stack.tenants_mode in (MODE_OPENSHIFT_LOGGING, MODE_OPENSHIFT_NETWORK)
    ]


def enqueue_for_storage_secret(
    stacks: Iterable[LokiStack], obj: ObjectRef
) -> list[tuple[str, str]]:
    """A request for the first stack whose storage secret is the changed object."""
    for stack in stacks:
        if obj.name == stack.storage_secret_name and obj.namespace == stack.namespace:
            return [stack.key]
    return []


def enqueue_for_storage_ca(
    stacks: Iterable[LokiStack], obj: ObjectRef
) -> list[tuple[str, str]]:
    """Requests for stacks in the object's namespace that use it as storage CA."""
    return [
        stack.key
        for stack in stacks
        if stack.namespace == obj.namespace
        and stack.storage_ca is not None
        and stack.storage_ca == obj.name
    ]


class _Client(Protocol):
    def get(self, namespace: str, name: str) -> LokiStack: ...

    def update(self, stack: LokiStack) -> None: ...


def _refresh(client: _Client, stack: LokiStack) -> None:
    fresh = client.get(stack.namespace, stack.name)
    for item in dataclasses.fields(LokiStack):
        setattr(stack, item.name, getattr(fresh, item.name))


def _retry_on_conflict(action) -> None:
    last: ConflictError | None = None
    for step in range(_RETRY_STEPS):
        if step:
            time.sleep(_RETRY_DELAY_SEC * (1 + random.random() * _RETRY_JITTER))
        try:
            action()
            return
        except ConflictError as err:
            last = err
    assert last is not None
    raise last


def update_annotation(client: _Client, stack: LokiStack, key: str, value: str) -> None:
    """Set an annotation on the stack, re-reading and retrying on conflicts."""
    if stack.annotations is None:
        stack.annotations = {}
    stack.annotations[key] = value
    try:
        client.update(stack)
        return
    except ConflictError:
        pass

    def attempt() -> None:
        _refresh(client, stack)
        if stack.annotations is None:
            stack.annotations = {}
        stack.annotations[key] = value
        client.update(stack)

    _retry_on_conflict(attempt)


def remove_annotation(client: _Client, stack: LokiStack, key: str) -> None:
    """Remove an annotation from the stack, re-reading and retrying on conflicts."""
    if stack.annotations is None:
        return
    stack.annotations.pop(key, None)
    try:
        client.update(stack)
        return
    except ConflictError:
        pass

    def attempt() -> None:
        _refresh(client, stack)
        if stack.annotations is None:
            return
        stack.annotations.pop(key, None)
        client.update(stack)

    _retry_on_conflict(attempt)