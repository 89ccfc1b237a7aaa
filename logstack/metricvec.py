"""Label-keyed metric vectors whose entries expire when idle, and gauges built on them."""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "GaugeAction",
    "GaugeConfig",
    "ExpiringGauge",
    "MetricVec",
    "Gauges",
    "clean_labels",
    "fingerprint",
    "parse_gauge_config",
    "validate_gauge_config",
    "ERR_GAUGE_ACTION_REQUIRED",
    "ERR_GAUGE_INVALID_ACTION",
]

ERR_GAUGE_ACTION_REQUIRED = (
    "gauge action must be defined as `set`, `inc`, `dec`, `add`, or `sub`"
)
ERR_GAUGE_INVALID_ACTION = (
    "action {} is not valid, action must be `set`, `inc`, `dec`, `add`, or `sub`"
)

_LABEL_NAME = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*\Z")
_FNV_OFFSET = 14695981039346656037
_FNV_PRIME = 1099511628211
_MASK64 = (1 << 64) - 1
_SEPARATOR = 0xFF


def _fnv_add(hash_value: int, data: bytes) -> int:
    for byte in data:
        hash_value ^= byte
        hash_value = (hash_value * _FNV_PRIME) & _MASK64
    return hash_value


def fingerprint(labels: Mapping[str, str]) -> int:
    """64-bit FNV-1a fingerprint of a label set, independent of key order."""
    hash_value = _FNV_OFFSET
    for name in sorted(labels):
        hash_value = _fnv_add(hash_value, name.encode())
        hash_value = _fnv_add(hash_value, bytes([_SEPARATOR]))
        hash_value = _fnv_add(hash_value, labels[name].encode())
        hash_value = _fnv_add(hash_value, bytes([_SEPARATOR]))
    return hash_value


def clean_labels(labels: Mapping[str, str]) -> dict[str, str]:
    """Drop labels with invalid names or the reserved ``__`` prefix."""
    return {
        name: value
        for name, value in labels.items()
        if _LABEL_NAME.match(name) and not name.startswith("__")
    }


class GaugeAction(str, Enum):
    SET = "set"
    INC = "inc"
    DEC = "dec"
    ADD = "add"
    SUB = "sub"


@dataclass
class GaugeConfig:
    value: str | None = None
    action: str = ""


def parse_gauge_config(config: Any) -> GaugeConfig:
    """Build a GaugeConfig from a mapping, an existing config or None."""
    if config is None:
        return GaugeConfig()
    if isinstance(config, GaugeConfig):
        return GaugeConfig(value=config.value, action=config.action)
    if not isinstance(config, Mapping):
        raise TypeError(f"gauge config must be a mapping, got {type(config).__name__}")
    value = config.get("value")
    action = config.get("action")
    if value is not None and not isinstance(value, str):
        raise TypeError(f"gauge value must be a string, got {type(value).__name__}")
    if action is None:
        action = ""
    if not isinstance(action, str):
        raise TypeError(f"gauge action must be a string, got {type(action).__name__}")
    return GaugeConfig(value=value, action=action)


def validate_gauge_config(config: GaugeConfig) -> GaugeConfig:
    """Check the action, normalising it to lower case. Returns the config."""
    if not config.action:
        raise ValueError(ERR_GAUGE_ACTION_REQUIRED)
    config.action = config.action.lower()
    if config.action not in {action.value for action in GaugeAction}:
        raise ValueError(ERR_GAUGE_INVALID_ACTION.format(config.action))
    return config


@runtime_checkable
class _Expirable(Protocol):
    def has_expired(self, current_time_sec: int, max_age_sec: int) -> bool: ...


class ExpiringGauge:
    """A gauge that remembers when it was last modified."""

    def __init__(
        self,
        name: str,
        help_text: str,
        const_labels: Mapping[str, str],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self.help = help_text
        self.const_labels = dict(const_labels)
        self.value = 0.0
        self.last_mod_sec = 0
        self._clock = clock

    def _touch(self) -> None:
        self.last_mod_sec = int(self._clock())

    def set(self, value: float) -> None:
        self.value = float(value)
        self._touch()

    def inc(self) -> None:
        self.value += 1
        self._touch()

    def dec(self) -> None:
        self.value -= 1
        self._touch()

    def add(self, value: float) -> None:
        self.value += value
        self._touch()

    def sub(self, value: float) -> None:
        self.value -= value
        self._touch()

    def set_to_current_time(self) -> None:
        self.value = float(self._clock())
        self._touch()

    def has_expired(self, current_time_sec: int, max_age_sec: int) -> bool:
        return current_time_sec - self.last_mod_sec >= max_age_sec


class MetricVec:
    """Metrics keyed by label set; expirable ones are pruned on collection."""

    def __init__(
        self,
        factory: Callable[[dict[str, str]], Any],
        max_age_sec: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._factory = factory
        self.max_age_sec = max_age_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._metrics: dict[int, Any] = {}

    def __contains__(self, labels: Mapping[str, str]) -> bool:
        with self._lock:
            return fingerprint(labels) in self._metrics

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def with_labels(self, labels: Mapping[str, str]) -> Any:
        """Return the metric for a label set, creating it if needed."""
        key = fingerprint(labels)
        with self._lock:
            metric = self._metrics.get(key)
            if metric is None:
                metric = self._factory(clean_labels(labels))
                self._metrics[key] = metric
            return metric

    def collect(self) -> list[Any]:
        """Return all current metrics, then prune the expired ones."""
        with self._lock:
            collected = list(self._metrics.values())
            self._prune_locked()
        return collected

    def delete(self, labels: Mapping[str, str]) -> bool:
        with self._lock:
            return self._metrics.pop(fingerprint(labels), None) is not None

    def delete_all(self) -> None:
        with self._lock:
            self._metrics = {}

    def prune(self) -> None:
        """Remove every expirable metric that has exceeded the maximum age."""
        with self._lock:
            self._prune_locked()

    def _prune_locked(self) -> None:
        now = int(self._clock())
        expired = [
            key
            for key, metric in self._metrics.items()
            if isinstance(metric, _Expirable)
            and metric.has_expired(now, self.max_age_sec)
        ]
        for key in expired:
            del self._metrics[key]


class Gauges(MetricVec):
    """A vector of expiring gauges, one per log stream."""

    def __init__(
        self,
        name: str,
        help_text: str,
        config: Any,
        max_idle_sec: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = validate_gauge_config(parse_gauge_config(config))
        super().__init__(
            lambda labels: ExpiringGauge(name, help_text, labels, clock=clock),
            max_idle_sec,
            clock,
        )

    def with_labels(self, labels: Mapping[str, str]) -> ExpiringGauge:
        """Return the gauge associated with a stream's label set."""
        return super().with_labels(labels)