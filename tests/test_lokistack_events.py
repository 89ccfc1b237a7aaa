import copy

import pytest

from logstack.lokistack_events import (
    MODE_OPENSHIFT_LOGGING,
    MODE_OPENSHIFT_NETWORK,
    MONITORING_NS,
    MONITORING_SVC_OPERATED,
    MONITORING_USER_WORKLOAD_NS,
    ConflictError,
    CreateEvent,
    DeleteEvent,
    GenericEvent,
    LokiStack,
    ObjectRef,
    UpdateEvent,
    create_or_update_only,
    create_update_or_delete,
    enqueue_all,
    enqueue_for_alertmanager_services,
    enqueue_for_storage_ca,
    enqueue_for_storage_secret,
    remove_annotation,
    update_annotation,
    update_or_delete_only,
    update_or_delete_with_status,
)


class FakeClient:
    def __init__(self, stored, conflicts=0):
        self.stored = stored
        self.conflicts = conflicts
        self.updates = 0
        self.gets = 0

    def get(self, namespace, name):
        self.gets += 1
        return copy.deepcopy(self.stored)

    def update(self, stack):
        self.updates += 1
        if self.conflicts:
            self.conflicts -= 1
            raise ConflictError("conflict")
        self.stored = copy.deepcopy(stack)


def obj(**kw):
    kw.setdefault("kind", "ConfigMap")
    return ObjectRef(**kw)


def test_create_or_update_only():
    assert create_or_update_only(CreateEvent(obj())) is True
    assert create_or_update_only(DeleteEvent(obj())) is False
    assert create_or_update_only(GenericEvent(obj())) is False
    assert create_or_update_only(UpdateEvent(obj(generation=1), obj(generation=2))) is True
    assert create_or_update_only(
        UpdateEvent(obj(annotations={"a": "1"}), obj(annotations={"a": "2"}))
    ) is True
    assert create_or_update_only(UpdateEvent(obj(resource_version="1"), obj(resource_version="2"))) is False


def test_update_or_delete_only():
    assert update_or_delete_only(CreateEvent(obj())) is False
    assert update_or_delete_only(UpdateEvent(obj(kind="Proxy"), obj(kind="Proxy"))) is True
    assert update_or_delete_only(UpdateEvent(obj(generation=1), obj(generation=1))) is False
    assert update_or_delete_only(UpdateEvent(obj(generation=1), obj(generation=3))) is True
    assert update_or_delete_only(DeleteEvent(obj())) is True
    assert update_or_delete_only(DeleteEvent(obj(), delete_state_unknown=True)) is False


def test_update_or_delete_with_status():
    old = obj(kind="Deployment", status={"ready": 1})
    new = obj(kind="Deployment", status={"ready": 2})
    assert update_or_delete_with_status(UpdateEvent(old, new)) is True
    assert update_or_delete_with_status(UpdateEvent(old, copy.deepcopy(old))) is False
    svc_old = obj(kind="Service", status={"x": 1})
    svc_new = obj(kind="Service", status={"x": 2})
    assert update_or_delete_with_status(UpdateEvent(svc_old, svc_new)) is False
    assert update_or_delete_with_status(CreateEvent(old)) is False
    assert update_or_delete_with_status(DeleteEvent(old)) is True


def test_create_update_or_delete():
    assert create_update_or_delete(CreateEvent(obj())) is True
    assert create_update_or_delete(DeleteEvent(obj(), delete_state_unknown=True)) is True
    assert create_update_or_delete(GenericEvent(obj())) is False
    assert create_update_or_delete(UpdateEvent(obj(resource_version="1"), obj(resource_version="1"))) is False
    assert create_update_or_delete(UpdateEvent(obj(resource_version="1"), obj(resource_version="2"))) is True


def test_enqueue_all():
    stacks = [LokiStack("a", "ns1"), LokiStack("b", "ns2")]
    assert enqueue_all(stacks) == [("ns1", "a"), ("ns2", "b")]
    assert enqueue_all([]) == []


def test_enqueue_for_alertmanager_services():
    stacks = [
        LokiStack("a", "ns", tenants_mode=MODE_OPENSHIFT_LOGGING),
        LokiStack("b", "ns", tenants_mode=MODE_OPENSHIFT_NETWORK),
        LokiStack("c", "ns", tenants_mode="static"),
        LokiStack("d", "ns"),
    ]
    for ns in (MONITORING_NS, MONITORING_USER_WORKLOAD_NS):
        svc = obj(kind="Service", name=MONITORING_SVC_OPERATED, namespace=ns)
        assert enqueue_for_alertmanager_services(stacks, svc) == [("ns", "a"), ("ns", "b")]
    other = obj(kind="Service", name=MONITORING_SVC_OPERATED, namespace="ns")
    assert enqueue_for_alertmanager_services(stacks, other) == []


def test_enqueue_for_storage_secret_first_match_only():
    stacks = [
        LokiStack("a", "ns", storage_secret_name="secret"),
        LokiStack("b", "ns", storage_secret_name="secret"),
        LokiStack("c", "other", storage_secret_name="secret"),
    ]
    secret_ref = obj(kind="Secret", name="secret", namespace="ns")
    assert enqueue_for_storage_secret(stacks, secret_ref) == [("ns", "a")]
    missing = obj(kind="Secret", name="nope", namespace="ns")
    assert enqueue_for_storage_secret(stacks, missing) == []


def test_enqueue_for_storage_ca():
    stacks = [
        LokiStack("a", "ns", storage_ca="ca"),
        LokiStack("b", "ns"),
        LokiStack("c", "ns", storage_ca="ca"),
        LokiStack("d", "other", storage_ca="ca"),
    ]
    cm = obj(name="ca", namespace="ns")
    assert enqueue_for_storage_ca(stacks, cm) == [("ns", "a"), ("ns", "c")]


def test_update_annotation_direct():
    stack = LokiStack("a", "ns", annotations=None)
    client = FakeClient(copy.deepcopy(stack))
    update_annotation(client, stack, "k", "v")
    assert client.stored.annotations == {"k": "v"}
    assert client.gets == 0


def test_update_annotation_retries_on_conflict():
    stored = LokiStack("a", "ns", annotations={"other": "x"})
    stack = LokiStack("a", "ns", annotations={})
    client = FakeClient(stored, conflicts=2)
    update_annotation(client, stack, "k", "v")
    assert client.stored.annotations == {"other": "x", "k": "v"}
    assert stack.annotations == {"other": "x", "k": "v"}
    assert client.gets == 2


def test_update_annotation_gives_up():
    stack = LokiStack("a", "ns")
    client = FakeClient(copy.deepcopy(stack), conflicts=100)
    with pytest.raises(ConflictError):
        update_annotation(client, stack, "k", "v")
    assert client.updates == 6


def test_remove_annotation():
    stack = LokiStack("a", "ns", annotations={"k": "v", "keep": "1"})
    client = FakeClient(copy.deepcopy(stack), conflicts=1)
    remove_annotation(client, stack, "k")
    assert client.stored.annotations == {"keep": "1"}


def test_remove_annotation_without_annotations_skips_update():
    stack = LokiStack("a", "ns", annotations=None)
    client = FakeClient(copy.deepcopy(stack))
    remove_annotation(client, stack, "k")
    assert client.updates == 0


def test_update_annotation_propagates_other_errors():
    class Broken(FakeClient):
        def update(self, stack):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        update_annotation(Broken(LokiStack("a", "ns")), LokiStack("a", "ns"), "k", "v")