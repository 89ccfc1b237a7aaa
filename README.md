# logstack

A small library of building blocks for running a log aggregation stack. It
uses only the Python standard library.

## What is inside

- `logstack.deletionmode`: the `Mode` enum (`disabled`, `filter-only`,
  `filter-and-delete`) with `Mode.delete_enabled()`, plus `parse_mode`,
  `enabled` and `all_modes`. An unknown name raises `UnknownModeError`.
- `logstack.metricvec`: `MetricVec` holds one metric per label set, keyed by
  `fingerprint(labels)`. `Gauges` is a `MetricVec` of `ExpiringGauge`
  objects built from a gauge config (`action` must be one of `set`, `inc`,
  `dec`, `add`, `sub`; see `GaugeAction` and `validate_gauge_config`).
  `collect()` returns the current metrics and then prunes the gauges that
  have been idle for at least the configured number of seconds. Labels with
  invalid names or a `__` prefix are dropped by `clean_labels` before a new
  metric is created.
- `logstack.logfmt_stage`: `LogfmtStage`, a pipeline stage that decodes
  logfmt text (`decode_logfmt`) from the entry or from an extracted `source`
  value and copies the mapped keys into the extracted values. Invalid
  configuration raises `LogfmtError`.
- `logstack.rulerconfig`: `RulerConfigValidator` rejects alertmanager
  header auth, global or per-tenant override, that sets both `credentials`
  and `credentials_file`. It raises `InvalidError` with one `FieldError` per
  offending field, and `BadRequestError` for an object that is not a
  `RulerConfig`. Deletion is never rejected.
- `logstack.chunkrefs`: `merge_chunk_sets` and `merge_series` merge and
  deduplicate `ShortRef` chunk references by series fingerprint.
  `GatewayClient.filter_chunks` groups blocks by the server address the
  pool resolves them to, sends each server its series in parallel, and
  merges the answers. A failed request leaves that server's series
  unfiltered; a block whose address cannot be resolved makes the call return
  every series unfiltered. Outcomes are counted in `GatewayClient.requests`.
  `ClientConfig.validate()` requires a non-empty `addresses`.
- `logstack.storage_ca`: `check_ca_configmap` returns a SHA-1 hex digest of
  a CA key and its contents, or raises `CAKeyError` if the key is missing or
  empty.
- `logstack.sizes`: the default `ComponentResources` and `StackSpec` for
  each `StackSize` (`1x.demo`, `1x.extra-small`, `1x.small`, `1x.medium`),
  returned as fresh copies by `resource_requirements` and `stack_size_spec`.
- `logstack.route`: `build_route` renders the gateway route manifest for a
  `RouteOptions` as a dictionary.
- `logstack.lokistack_events`: the event filters that decide when to
  reconcile (`create_or_update_only`, `update_or_delete_only`,
  `update_or_delete_with_status`, `create_update_or_delete`), the
  request-mapping functions (`enqueue_all`,
  `enqueue_for_alertmanager_services`, `enqueue_for_storage_secret`,
  `enqueue_for_storage_ca`), and `update_annotation` / `remove_annotation`,
  which re-read the stack and retry when the client raises `ConflictError`.

## Example

```python
from logstack.deletionmode import parse_mode
from logstack.logfmt_stage import LogfmtStage

assert parse_mode("filter-only").delete_enabled()

stage = LogfmtStage({"mapping": {"level": "", "msg": "message"}})
extracted = {}
stage.process({}, extracted, None, 'level=info message="hello world"')
assert extracted == {"level": "info", "msg": "hello world"}
```

## What it does not do

- There is no network transport. `GatewayClient` is given a pool object
  that resolves addresses (`addr`), hands out clients (`get_client_for`)
  and can be stopped (`stop`); each client must offer `filter_chunk_refs`.
- There is no cluster client. The annotation helpers take any object with
  `get(namespace, name)` and `update(stack)`, and the event filters work on
  plain `ObjectRef` and event dataclasses.
- Metrics are kept in memory only; nothing registers or exposes them.
- There is no command-line program or server.

## Running the tests

```
pip install -e ".[test]"
pytest
```