"""A pipeline stage that extracts values from logfmt-formatted log lines."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "LogfmtError",
    "LogfmtConfig",
    "LogfmtStage",
    "decode_logfmt",
    "parse_logfmt_config",
    "validate_logfmt_config",
    "ERR_MAPPING_REQUIRED",
    "ERR_EMPTY_LOGFMT_STAGE_CONFIG",
    "ERR_EMPTY_LOGFMT_STAGE_SOURCE",
    "STAGE_TYPE_LOGFMT",
]

ERR_MAPPING_REQUIRED = "logfmt mapping is required"
ERR_EMPTY_LOGFMT_STAGE_CONFIG = "empty logfmt stage configuration"
ERR_EMPTY_LOGFMT_STAGE_SOURCE = "empty source"
STAGE_TYPE_LOGFMT = "logfmt"


class LogfmtError(ValueError):
    """Raised for invalid stage configuration or malformed logfmt input."""


def _syntax_error(lineno: int, pos: int, msg: str) -> LogfmtError:
    return LogfmtError(f"logfmt syntax error at pos {pos + 1} on line {lineno}: {msg}")


def _unexpected(lineno: int, pos: int, char: str) -> LogfmtError:
    return _syntax_error(lineno, pos, f"unexpected '{char}'")


def _quoted_value(line: str, pos: int, lineno: int) -> tuple[str, int]:
    has_escape = False
    escaped = False
    for index, char in enumerate(line[pos + 1 :], start=pos + 1):
        if escaped:
            escaped = False
        elif char == "\\":
            has_escape = escaped = True
        elif char == '"':
            raw = line[pos : index + 1]
            if not has_escape:
                return raw[1:-1], index + 1
            try:
                return json.loads(raw), index + 1
            except ValueError:
                raise _syntax_error(lineno, index + 1, "invalid quoted value") from None
    raise _syntax_error(lineno, len(line), "unterminated quoted value")


def _scan_line(line: str, lineno: int) -> Iterator[tuple[str, str]]:
    pos, end = 0, len(line)
    while True:
        while pos < end and line[pos] <= " ":
            pos += 1
        if pos >= end:
            return
        start = pos
        while pos < end and line[pos] > " " and line[pos] not in '="':
            pos += 1
        if pos < end and line[pos] == '"':
            raise _unexpected(lineno, pos, '"')
        key = line[start:pos]
        if pos >= end or line[pos] <= " ":
            yield key, ""
            continue
        if pos == start:
            raise _unexpected(lineno, pos, "=")
        pos += 1
        if pos >= end or line[pos] <= " ":
            yield key, ""
            continue
        if line[pos] == '"':
            value, pos = _quoted_value(line, pos, lineno)
            yield key, value
            continue
        start = pos
        while pos < end and line[pos] > " ":
            if line[pos] in '="':
                raise _unexpected(lineno, pos, line[pos])
            pos += 1
        yield key, line[start:pos]


def decode_logfmt(text: str) -> Iterator[tuple[str, str]]:
    """Yield (key, value) pairs from logfmt text; a bare key has value ''."""
    for lineno, line in enumerate(text.split("\n"), start=1):
        if line.endswith("\r"):
            line = line[:-1]
        yield from _scan_line(line, lineno)


@dataclass
class LogfmtConfig:
    mapping: dict[str, str] = field(default_factory=dict)
    source: str | None = None


def parse_logfmt_config(config: Any) -> LogfmtConfig:
    """Build a LogfmtConfig from a mapping, an existing config or None."""
    if config is None:
        return LogfmtConfig()
    if isinstance(config, LogfmtConfig):
        return LogfmtConfig(mapping=dict(config.mapping), source=config.source)
    if not isinstance(config, Mapping):
        raise LogfmtError(f"logfmt config must be a mapping, got {type(config).__name__}")
    raw_mapping = config.get("mapping") or {}
    if not isinstance(raw_mapping, Mapping):
        raise LogfmtError("logfmt mapping must be a mapping")
    mapping: dict[str, str] = {}
    for key, value in raw_mapping.items():
        if value is None:
            value = ""
        if not isinstance(key, str) or not isinstance(value, str):
            raise LogfmtError("logfmt mapping keys and values must be strings")
        mapping[key] = value
    source = config.get("source")
    if source is not None and not isinstance(source, str):
        raise LogfmtError("logfmt source must be a string")
    return LogfmtConfig(mapping=mapping, source=source)


def validate_logfmt_config(config: LogfmtConfig | None) -> dict[str, str]:
    """Validate a config and return its mapping inverted (logfmt key -> extracted key)."""
    if config is None:
        raise LogfmtError(ERR_EMPTY_LOGFMT_STAGE_CONFIG)
    if not config.mapping:
        raise LogfmtError(ERR_MAPPING_REQUIRED)
    if config.source is not None and config.source == "":
        raise LogfmtError(ERR_EMPTY_LOGFMT_STAGE_SOURCE)
    return {(value or key): key for key, value in config.mapping.items()}


def _as_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode()
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    raise TypeError(f"can't convert {type(value).__name__} to string")


class LogfmtStage:
    """Sets extracted values from logfmt fields of the entry or of a source value."""

    def __init__(self, config: Any, logger: logging.Logger | None = None) -> None:
        self.config = parse_logfmt_config(config)
        self.inverse_mapping = validate_logfmt_config(self.config)
        self._log = logger or logging.getLogger(__name__)

    def process(
        self,
        labels: Mapping[str, str],
        extracted: dict[str, Any],
        timestamp: Any,
        entry: str | None,
    ) -> None:
        """Parse the input and store mapped fields into ``extracted``."""
        text = entry
        source = self.config.source
        if source is not None:
            if source not in extracted:
                self._log.debug("source %r does not exist in the extracted values", source)
                return
            try:
                text = _as_string(extracted[source])
            except (TypeError, UnicodeDecodeError) as err:
                self._log.debug("failed to convert source %r to string: %s", source, err)
                return
        if text is None:
            self._log.debug("cannot parse a nil entry")
            return
        found = 0
        try:
            for key, value in decode_logfmt(text):
                target = self.inverse_mapping.get(key)
                if target is not None:
                    extracted[target] = value
                    found += 1
        except LogfmtError as err:
            self._log.error("failed to decode logfmt: %s", err)
            return
        if found != len(self.inverse_mapping):
            self._log.debug(
                "found only %d out of %d configured mappings in logfmt stage",
                found,
                len(self.inverse_mapping),
            )

    def name(self) -> str:
        return STAGE_TYPE_LOGFMT