"""Turn CloudWatch results and tagged resources into Prometheus metrics."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from cwpromutil.metrics import DUPLICATE_METRICS_FILTERED_COUNTER, PrometheusMetric
from cwpromutil.naming import prom_string, prom_string_tag

PERCENTILE = re.compile(r"p(\d{1,2}(\.\d{0,2})?|100)", re.ASCII)

LabelSets = dict[str, set[str]]

_default_logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """Raised when CloudWatch data cannot be turned into a metric."""


@dataclass
class Tag:
    key: str
    value: str


@dataclass
class Dimension:
    name: str
    value: str


@dataclass
class ScrapeContext:
    region: str
    account_id: str
    custom_tags: list[Tag] = field(default_factory=list)


@dataclass
class TaggedResource:
    arn: str
    namespace: str
    region: str = ""
    tags: list[Tag] = field(default_factory=list)


@dataclass
class TaggedResourceResult:
    context: ScrapeContext | None
    data: list[TaggedResource] = field(default_factory=list)


@dataclass
class Datapoint:
    timestamp: datetime
    maximum: float | None = None
    minimum: float | None = None
    sum: float | None = None
    sample_count: float | None = None
    average: float | None = None
    extended_statistics: dict[str, float | None] = field(default_factory=dict)


@dataclass
class GetMetricDataResult:
    statistic: str
    datapoint: float | None
    timestamp: datetime | None = None


@dataclass
class GetMetricStatisticsResult:
    datapoints: list[Datapoint] = field(default_factory=list)
    statistics: list[str] = field(default_factory=list)


@dataclass
class MetricMigrationParams:
    nil_to_zero: bool = False
    add_cloudwatch_timestamp: bool = False


@dataclass
class CloudwatchData:
    metric_name: str
    namespace: str
    resource_name: str = ""
    dimensions: list[Dimension] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    migration_params: MetricMigrationParams = field(default_factory=MetricMigrationParams)
    get_metric_data_result: GetMetricDataResult | None = None
    get_metric_statistics_result: GetMetricStatisticsResult | None = None


@dataclass
class CloudwatchMetricResult:
    context: ScrapeContext | None
    data: list[CloudwatchData] = field(default_factory=list)


def build_metric_name(namespace: str, metric_name: str, statistic: str) -> str:
    """Build the exported metric name for a namespace, metric and statistic."""
    # Namespaces such as /aws/sagemaker/TrainingJobs start with a slash.
    prom_ns = prom_string(namespace.lower()).removeprefix("_")
    prefix = "" if prom_ns.startswith("aws") else "aws_"
    prom_metric = prom_string(metric_name)
    # Some metric names repeat parts of the namespace, e.g. Glue's "glue." prefix.
    for part in prom_ns.split("_"):
        prom_metric = prom_metric.removeprefix(part)
    prom_metric = prom_metric.removeprefix("_")
    name = f"{prefix}{prom_ns}_{prom_metric}"
    if statistic:
        name += "_" + prom_string(statistic)
    return name


def build_namespace_info_metrics(
    tag_data: Iterable[TaggedResourceResult],
    metrics: Iterable[PrometheusMetric],
    observed_metric_labels: LabelSets,
    labels_snake_case: bool,
    logger: logging.Logger | None = None,
) -> tuple[list[PrometheusMetric], LabelSets]:
    """Append an ``info`` metric for every tagged resource."""
    logger = logger or _default_logger
    output = list(metrics)
    for tag_result in tag_data:
        context_labels = _context_to_labels(tag_result.context, labels_snake_case, logger)
        for resource in tag_result.data:
            metric_name = build_metric_name(resource.namespace, "info", "")
            labels = dict(context_labels)
            labels["name"] = resource.arn
            for tag in resource.tags:
                ok, prom_tag = prom_string_tag(tag.key, labels_snake_case)
                if not ok:
                    logger.warning("tag name is an invalid prometheus label name: %s", tag.key)
                    continue
                labels["tag_" + prom_tag] = tag.value
            _record_labels_for_metric(metric_name, labels, observed_metric_labels)
            output.append(PrometheusMetric(name=metric_name, labels=labels, value=0.0))
    return output, observed_metric_labels


def build_metrics(
    results: Iterable[CloudwatchMetricResult],
    labels_snake_case: bool,
    logger: logging.Logger | None = None,
) -> tuple[list[PrometheusMetric], LabelSets]:
    """Turn CloudWatch results into metrics and the label names seen per metric."""
    logger = logger or _default_logger
    output: list[PrometheusMetric] = []
    observed: LabelSets = {}
    for result in results:
        context_labels = _context_to_labels(result.context, labels_snake_case, logger)
        for metric in result.data:
            if metric.get_metric_data_result is None and metric.get_metric_statistics_result is None:
                logger.warning(
                    "Attempted to migrate metric with no result: namespace=%s metric_name=%s "
                    "resource_name=%s",
                    metric.namespace,
                    metric.metric_name,
                    metric.resource_name,
                )
            params = metric.migration_params
            for statistic in _statistics(metric):
                datapoint, timestamp = get_datapoint(metric, statistic)
                if datapoint is None and params.add_cloudwatch_timestamp:
                    # Without a datapoint there is no usable timestamp; skip rather than guess.
                    continue
                value = math.nan if datapoint is None else datapoint
                if params.nil_to_zero and math.isnan(value):
                    value = 0.0
                name = build_metric_name(metric.namespace, metric.metric_name, statistic)
                labels = _create_prometheus_labels(metric, labels_snake_case, context_labels, logger)
                _record_labels_for_metric(name, labels, observed)
                output.append(
                    PrometheusMetric(
                        name=name,
                        labels=labels,
                        value=value,
                        include_timestamp=params.add_cloudwatch_timestamp,
                        timestamp=timestamp,
                    )
                )
    return output, observed


def _statistics(data: CloudwatchData) -> list[str]:
    if data.get_metric_data_result is not None:
        return [data.get_metric_data_result.statistic]
    if data.get_metric_statistics_result is not None:
        return data.get_metric_statistics_result.statistics
    return []


def sort_by_timestamp(datapoints: list[Datapoint]) -> list[Datapoint]:
    """Sort datapoints in place, newest first, and return them."""
    datapoints.sort(key=lambda point: point.timestamp, reverse=True)
    return datapoints


def get_datapoint(cwd: CloudwatchData, statistic: str) -> tuple[float | None, datetime | None]:
    """Pick the value and timestamp to export for one statistic."""
    if cwd.get_metric_data_result is None and cwd.get_metric_statistics_result is None:
        raise MigrationError(f"cannot map a data point with no results on {cwd.metric_name}")

    if cwd.get_metric_data_result is not None:
        return cwd.get_metric_data_result.datapoint, cwd.get_metric_data_result.timestamp

    single = {
        "Maximum": "maximum",
        "Minimum": "minimum",
        "Sum": "sum",
        "SampleCount": "sample_count",
    }
    averages: list[Datapoint] = []
    for point in sort_by_timestamp(cwd.get_metric_statistics_result.datapoints):
        if statistic in single:
            value = getattr(point, single[statistic])
            if value is not None:
                return value, point.timestamp
        elif statistic == "Average":
            if point.average is not None:
                averages.append(point)
        elif PERCENTILE.fullmatch(statistic):
            if statistic in point.extended_statistics:
                return point.extended_statistics[statistic], point.timestamp
        else:
            raise MigrationError(
                f"invalid statistic requested on metric {cwd.metric_name}: {statistic}"
            )

    if averages:
        total = sum(point.average for point in averages)
        latest = max(point.timestamp for point in averages)
        return total / len(averages), latest
    return None, None


def _create_prometheus_labels(
    cwd: CloudwatchData,
    labels_snake_case: bool,
    context_labels: dict[str, str],
    logger: logging.Logger,
) -> dict[str, str]:
    labels = {"name": cwd.resource_name}
    for dimension in cwd.dimensions:
        ok, prom_tag = prom_string_tag(dimension.name, labels_snake_case)
        if not ok:
            logger.warning("dimension name is an invalid prometheus label name: %s", dimension.name)
            continue
        labels["dimension_" + prom_tag] = dimension.value
    for tag in cwd.tags:
        ok, prom_tag = prom_string_tag(tag.key, labels_snake_case)
        if not ok:
            logger.warning("metric tag name is an invalid prometheus label name: %s", tag.key)
            continue
        labels["tag_" + prom_tag] = tag.value
    labels.update(context_labels)
    return labels


def _context_to_labels(
    context: ScrapeContext | None, labels_snake_case: bool, logger: logging.Logger
) -> dict[str, str]:
    if context is None:
        return {}
    labels = {"region": context.region, "account_id": context.account_id}
    for tag in context.custom_tags:
        ok, prom_tag = prom_string_tag(tag.key, labels_snake_case)
        if not ok:
            logger.warning("custom tag name is an invalid prometheus label name: %s", tag.key)
            continue
        labels["custom_tag_" + prom_tag] = tag.value
    return labels


def _record_labels_for_metric(
    metric_name: str, labels: dict[str, str], observed: LabelSets
) -> LabelSets:
    observed.setdefault(metric_name, set()).update(labels)
    return observed


def ensure_label_consistency_and_remove_duplicates(
    metrics: Iterable[PrometheusMetric], observed_metric_labels: LabelSets
) -> list[PrometheusMetric]:
    """Give every metric all labels seen for its name and drop duplicates.

    Prometheus requires metrics with one name to share one label set, and no
    metric to be registered twice.
    """
    seen: set[tuple[str, frozenset[tuple[str, str]]]] = set()
    output: list[PrometheusMetric] = []
    for metric in metrics:
        for label in observed_metric_labels.get(metric.name, ()):
            metric.labels.setdefault(label, "")
        key = (metric.name, frozenset(metric.labels.items()))
        if key in seen:
            DUPLICATE_METRICS_FILTERED_COUNTER.inc()
            continue
        seen.add(key)
        output.append(metric)
    return output