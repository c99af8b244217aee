"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

evaluations_total = Counter(
    "honeycomb_metric_evaluations_total",
    "Total number of metric evaluations by resulting phase",
    ["phase"],
)

evaluation_duration_seconds = Histogram(
    "honeycomb_metric_evaluation_duration_seconds",
    "Duration of metric evaluations in seconds",
    buckets=[0.1, 0.5, 1, 2, 5, 10, 20],
)

query_submissions_total = Counter(
    "honeycomb_query_submissions_total",
    "Total number of queries created on Honeycomb",
)

query_polls_total = Counter(
    "honeycomb_query_result_polls_total",
    "Total number of query result polls by HTTP status",
    ["status"],
)
