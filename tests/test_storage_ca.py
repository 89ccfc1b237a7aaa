import string

import pytest

from logstack.storage_ca import DEFAULT_CA_KEY, CAKeyError, check_ca_configmap


def test_hash_is_hex_sha1():
    digest = check_ca_configmap({DEFAULT_CA_KEY: "cert"}, DEFAULT_CA_KEY)
    assert len(digest) == 40
    assert set(digest) <= set(string.hexdigits.lower())


def test_hash_is_deterministic():
    data = {"ca.crt": "cert"}
    assert check_ca_configmap(data, "ca.crt") == check_ca_configmap(dict(data), "ca.crt")


def test_hash_changes_with_content():
    first = check_ca_configmap({"ca.crt": "cert-a"}, "ca.crt")
    second = check_ca_configmap({"ca.crt": "cert-b"}, "ca.crt")
    assert first != second


def test_hash_changes_with_key_name():
    first = check_ca_configmap({"a.crt": "cert"}, "a.crt")
    second = check_ca_configmap({"b.crt": "cert"}, "b.crt")
    assert first != second


def test_missing_key_raises():
    with pytest.raises(CAKeyError) as info:
        check_ca_configmap({"other": "cert"}, DEFAULT_CA_KEY)
    assert info.value.key == DEFAULT_CA_KEY
    assert str(info.value) == f"key not present or data empty: {DEFAULT_CA_KEY}"


def test_empty_data_raises():
    with pytest.raises(CAKeyError, match="key not present or data empty: ca.crt"):
        check_ca_configmap({"ca.crt": ""}, "ca.crt")