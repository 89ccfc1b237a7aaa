"""Building blocks for a log aggregation stack: deletion modes, metric vectors,
logfmt extraction, ruler config validation, chunk-ref merging, storage CA checks,
stack sizes, gateway routes and reconcile event handling."""

__version__ = "0.1.0"

__all__ = [
    "chunkrefs",
    "deletionmode",
    "logfmt_stage",
    "lokistack_events",
    "metricvec",
    "route",
    "rulerconfig",
    "sizes",
    "storage_ca",
]