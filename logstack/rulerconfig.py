"""Admission validation for RulerConfig resources."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "HeaderAuth",
    "BasicAuth",
    "AlertManagerClientConfig",
    "AlertManagerSpec",
    "RulerOverrides",
    "RulerConfigSpec",
    "RulerConfig",
    "FieldError",
    "InvalidError",
    "BadRequestError",
    "RulerConfigValidator",
    "HEADER_AUTH_CREDENTIALS_CONFLICT",
]

HEADER_AUTH_CREDENTIALS_CONFLICT = (
    "credentials and credentialsFile cannot be used at the same time"
)
_GROUP = "loki.grafana.com"
_KIND = "RulerConfig"
# The validator never emits admission warnings.
_NO_WARNINGS: tuple[str, ...] = ()


@dataclass
class HeaderAuth:
    type: str | None = None
    credentials: str | None = None
    credentials_file: str | None = None


@dataclass
class BasicAuth:
    username: str | None = None
    password: str | None = None


@dataclass
class AlertManagerClientConfig:
    basic_auth: BasicAuth | None = None
    header_auth: HeaderAuth | None = None


@dataclass
class AlertManagerSpec:
    client: AlertManagerClientConfig | None = None


@dataclass
class RulerOverrides:
    alert_manager_overrides: AlertManagerSpec | None = None


@dataclass
class RulerConfigSpec:
    alert_manager_spec: AlertManagerSpec | None = None
    overrides: dict[str, RulerOverrides] = field(default_factory=dict)


@dataclass
class RulerConfig:
    name: str = ""
    spec: RulerConfigSpec = field(default_factory=RulerConfigSpec)


@dataclass(frozen=True)
class FieldError:
    """An invalid value found at a field path."""

    field: str
    bad_value: Any
    detail: str
    type: str = "FieldValueInvalid"

    def __str__(self) -> str:
        return f'{self.field}: Invalid value: "{self.bad_value}": {self.detail}'


class InvalidError(ValueError):
    """The resource failed validation; carries every field error found."""

    def __init__(self, group: str, kind: str, name: str, errors: list[FieldError]):
        self.group = group
        self.kind = kind
        self.name = name
        self.errors = list(errors)
        if len(self.errors) == 1:
            listed = str(self.errors[0])
        else:
            listed = "[" + ", ".join(str(err) for err in self.errors) + "]"
        super().__init__(f'{kind}.{group} "{name}" is invalid: {listed}')

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InvalidError):
            return NotImplemented
        return (self.group, self.kind, self.name, self.errors) == (
            other.group,
            other.kind,
            other.name,
            other.errors,
        )

    __hash__ = None  # type: ignore[assignment]


class BadRequestError(ValueError):
    """The object handed to the validator is not a RulerConfig."""


def _header_auth_conflicts(
    prefix: str, spec: AlertManagerSpec | None
) -> Iterator[FieldError]:
    if spec is None or spec.client is None or spec.client.header_auth is None:
        return
    auth = spec.client.header_auth
    if auth.credentials is not None and auth.credentials_file is not None:
        base = f"{prefix}.alertmanager.client.headerAuth"
        yield FieldError(f"{base}.credentials", auth.credentials, HEADER_AUTH_CREDENTIALS_CONFLICT)
        yield FieldError(
            f"{base}.credentialsFile", auth.credentials_file, HEADER_AUTH_CREDENTIALS_CONFLICT
        )


class RulerConfigValidator:
    """Validates RulerConfig objects on create and update."""

    def validate_create(self, obj: Any) -> list[str]:
        """Validate a new object; returns warnings or raises InvalidError."""
        return self._validate(obj)

    def validate_update(self, old_obj: Any, new_obj: Any) -> list[str]:
        """Validate the updated object; returns warnings or raises InvalidError."""
        return self._validate(new_obj)

    def validate_delete(self, obj: Any) -> list[str]:
        """Deletion is never rejected; returns the (empty) warnings."""
        return list(_NO_WARNINGS)

    def _validate(self, obj: Any) -> list[str]:
        if not isinstance(obj, RulerConfig):
            raise BadRequestError(
                f"object is not of type RulerConfig: {type(obj).__name__}"
            )
        errors = list(_header_auth_conflicts("spec", obj.spec.alert_manager_spec))
        for tenant, override in obj.spec.overrides.items():
            errors.extend(
                _header_auth_conflicts(
                    f"spec.overrides.{tenant}", override.alert_manager_overrides
                )
            )
        if errors:
            raise InvalidError(_GROUP, _KIND, obj.name, errors)
        return list(_NO_WARNINGS)