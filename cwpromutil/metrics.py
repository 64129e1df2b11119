"""Counters and gauges rendered in the Prometheus text exposition format."""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime

GAUGE_HELP = "Help is not implemented yet."


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_labels(labels: dict[str, str]) -> str:
    if not labels:
        return ""
    body = ",".join(f'{key}="{_escape(labels[key])}"' for key in sorted(labels))
    return "{" + body + "}"


def _family_header(name: str, help_text: str, kind: str) -> str:
    header = f"# HELP {name} {help_text}\n" if help_text else ""
    return header + f"# TYPE {name} {kind}\n"


@dataclass
class Counter:
    """A monotonically increasing value."""

    name: str
    help: str = ""
    value: float = 0.0

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("counter cannot decrease in value")
        self.value += amount

    def render(self) -> str:
        return _family_header(self.name, self.help, "counter") + (
            f"{self.name} {_format_value(self.value)}\n"
        )


@dataclass
class CounterVec:
    """A family of counters keyed by the value of one label."""

    name: str
    help: str
    label_name: str
    _values: dict[str, float] = field(default_factory=dict, repr=False)

    def inc(self, label_value: str, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("counter cannot decrease in value")
        self._values[label_value] = self._values.get(label_value, 0.0) + amount

    def value(self, label_value: str) -> float:
        return self._values.get(label_value, 0.0)

    def render(self) -> str:
        lines = [_family_header(self.name, self.help, "counter")]
        for label_value in sorted(self._values):
            labels = _format_labels({self.label_name: label_value})
            lines.append(f"{self.name}{labels} {_format_value(self._values[label_value])}\n")
        return "".join(lines)


@dataclass
class PrometheusMetric:
    """One gauge sample to be exported."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    value: float = 0.0
    include_timestamp: bool = False
    timestamp: datetime | None = None

    def render(self) -> str:
        line = f"{self.name}{_format_labels(self.labels)} {_format_value(self.value)}"
        if self.include_timestamp and self.timestamp is not None:
            line += f" {int(self.timestamp.timestamp() * 1000)}"
        return line


class PrometheusCollector:
    """Holds a fixed set of metrics and exposes them as gauges."""

    def __init__(self, metrics: Iterable[PrometheusMetric]):
        self.metrics = list(metrics)

    def collect(self) -> Iterator[PrometheusMetric]:
        yield from self.metrics

    def render(self) -> str:
        families: dict[str, list[str]] = {}
        for metric in self.collect():
            families.setdefault(metric.name, []).append(metric.render())
        parts = []
        for name, lines in families.items():
            parts.append(_family_header(name, GAUGE_HELP, "gauge"))
            parts.extend(line + "\n" for line in lines)
        return "".join(parts)


CLOUDWATCH_API_ERROR_COUNTER = CounterVec(
    "yace_cloudwatch_request_errors", "Help is not implemented yet.", "api_name"
)
CLOUDWATCH_API_COUNTER = CounterVec(
    "yace_cloudwatch_requests_total", "Number of calls made to the CloudWatch APIs", "api_name"
)
CLOUDWATCH_GET_METRIC_DATA_API_COUNTER = Counter(
    "yace_cloudwatch_getmetricdata_requests_total",
    "DEPRECATED: replaced by yace_cloudwatch_requests_total with api_name label",
)
CLOUDWATCH_GET_METRIC_DATA_API_METRICS_COUNTER = Counter(
    "yace_cloudwatch_getmetricdata_metrics_requested_total",
    "Number of metrics requested from the CloudWatch GetMetricData API which is how AWS bills",
)
CLOUDWATCH_GET_METRIC_STATISTICS_API_COUNTER = Counter(
    "yace_cloudwatch_getmetricstatistics_requests_total",
    "DEPRECATED: replaced by yace_cloudwatch_requests_total with api_name label",
)
RESOURCE_GROUP_TAGGING_API_COUNTER = Counter(
    "yace_cloudwatch_resourcegrouptaggingapi_requests_total", "Help is not implemented yet."
)
AUTO_SCALING_API_COUNTER = Counter(
    "yace_cloudwatch_autoscalingapi_requests_total", "Help is not implemented yet."
)
TARGET_GROUPS_API_COUNTER = Counter(
    "yace_cloudwatch_targetgroupapi_requests_total", "Help is not implemented yet."
)
API_GATEWAY_API_COUNTER = Counter("yace_cloudwatch_apigatewayapi_requests_total")
API_GATEWAY_API_V2_COUNTER = Counter("yace_cloudwatch_apigatewayapiv2_requests_total")
EC2_API_COUNTER = Counter("yace_cloudwatch_ec2api_requests_total", "Help is not implemented yet.")
SHIELD_API_COUNTER = Counter(
    "yace_cloudwatch_shieldapi_requests_total", "Help is not implemented yet."
)
MANAGED_PROMETHEUS_API_COUNTER = Counter(
    "yace_cloudwatch_managedprometheusapi_requests_total", "Help is not implemented yet."
)
STORAGEGATEWAY_API_COUNTER = Counter(
    "yace_cloudwatch_storagegatewayapi_requests_total", "Help is not implemented yet."
)
DMS_API_COUNTER = Counter("yace_cloudwatch_dmsapi_requests_total", "Help is not implemented yet.")
DUPLICATE_METRICS_FILTERED_COUNTER = Counter(
    "yace_cloudwatch_duplicate_metrics_filtered", "Help is not implemented yet."
)