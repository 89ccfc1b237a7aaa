"""Checks on the config map that holds an object storage CA certificate."""

from __future__ import annotations

import hashlib
from collections.abc import Mapping

__all__ = ["CAKeyError", "check_ca_configmap", "DEFAULT_CA_KEY", "HASH_SEPARATOR"]

DEFAULT_CA_KEY = "service-ca.crt"
HASH_SEPARATOR = b","


class CAKeyError(ValueError):
    """The CA key is missing from the config map or its data is empty."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"key not present or data empty: {key}")


def check_ca_configmap(data: Mapping[str, str], key: str) -> str:
    """Return a SHA-1 hex digest of the key name and its CA data.

    Raises CAKeyError if the key is absent or its value is empty.
    """
    content = data.get(key, "")
    if not content:
        raise CAKeyError(key)
    digest = hashlib.sha1()
    digest.update(key.encode())
    digest.update(HASH_SEPARATOR)
    digest.update(content.encode())
    return digest.hexdigest()