# cwpromutil

Helpers for turning CloudWatch metric results and tagged resources into
Prometheus metrics, and for rendering them in the Prometheus text
exposition format. The package has no dependencies outside the standard
library.

## Modules

### `cwpromutil.naming`

Name clean-up:

- `split_string(text)` puts a dot between a lowercase letter or digit and
  a following uppercase letter (`GlobalTopicCount` → `Global.Topic.Count`).
- `sanitize(text)` replaces spaces, commas, tabs, slashes, backslashes,
  dots, dashes, colons, `=`, `@`, `<`, `>` and `“` with `_`, and `%` with
  `_percent`.
- `prom_string(text)` combines both and lowercases the result
  (`GlobalTopicCount` → `global_topic_count`).
- `is_valid_label_name(name)` checks a name against the Prometheus label
  name rules.
- `prom_string_tag(text, labels_snake_case)` returns `(ok, name)`: the
  name is `prom_string(text)` when `labels_snake_case` is true, otherwise
  `sanitize(text)`, and `ok` tells whether it is a valid label name.

### `cwpromutil.migrate`

Input types are dataclasses: `Tag`, `Dimension`, `ScrapeContext`,
`TaggedResource`, `TaggedResourceResult`, `Datapoint`,
`GetMetricDataResult`, `GetMetricStatisticsResult`,
`MetricMigrationParams`, `CloudwatchData` and `CloudwatchMetricResult`.

- `build_metric_name(namespace, metric_name, statistic)` builds names such
  as `aws_elasticache_cpuutilization_average`. An `aws_` prefix is added
  unless the namespace already starts with `aws`, a leading slash in the
  namespace is dropped, and parts of the namespace repeated at the start
  of the metric name are removed (`Glue` + `glue.driver.aggregate.bytesRead`
  → `aws_glue_driver_aggregate_bytes_read_...`).
- `build_metrics(results, labels_snake_case, logger=None)` returns a list
  of `PrometheusMetric` objects and a dict mapping each metric name to the
  set of label names seen for it. Labels are `name` (the resource name),
  `dimension_*`, `tag_*`, and from the scrape context `region`,
  `account_id` and `custom_tag_*`. A missing datapoint becomes NaN, or `0`
  when `nil_to_zero` is set; when `add_cloudwatch_timestamp` is set a
  missing datapoint is skipped instead. Names that are not valid label
  names are logged as warnings and left out.
- `build_namespace_info_metrics(tag_data, metrics, observed_metric_labels,
  labels_snake_case, logger=None)` appends a `*_info` metric with value `0`
  for each `TaggedResource` and records its labels.
- `get_datapoint(cwd, statistic)` picks the value and timestamp to export.
  For GetMetricStatistics results it takes the newest datapoint holding
  `Maximum`, `Minimum`, `Sum`, `SampleCount` or a percentile such as `p99`,
  and for `Average` the mean of all averages with the latest timestamp.
  It raises `MigrationError` for data with no result or an unknown
  statistic.
- `sort_by_timestamp(datapoints)` sorts datapoints in place, newest first.
- `ensure_label_consistency_and_remove_duplicates(metrics,
  observed_metric_labels)` fills in every label seen for a metric name
  (with an empty value) and drops metrics with the same name and labels,
  counting each dropped one in `DUPLICATE_METRICS_FILTERED_COUNTER`.

The logger arguments take a `logging.Logger`; when omitted, the module's
own logger is used.

### `cwpromutil.metrics`

- `PrometheusMetric` is one gauge sample: `name`, `labels`, `value`,
  `include_timestamp` and `timestamp`. `render()` gives one exposition
  line with labels sorted by name, followed by the timestamp in
  milliseconds when `include_timestamp` is set.
- `PrometheusCollector(metrics)` holds a list of metrics; `collect()`
  yields them and `render()` writes them grouped by name, each group under
  `# HELP` and `# TYPE ... gauge` lines.
- `Counter` (`inc(amount=1.0)`, `render()`) and `CounterVec`, a counter
  family keyed by one label (`inc(label_value, amount=1.0)`,
  `value(label_value)`, `render()`). Both refuse negative increments with
  `ValueError`.
- Module-level counters for the exporter's own bookkeeping, such as
  `CLOUDWATCH_API_COUNTER`, `CLOUDWATCH_API_ERROR_COUNTER`,
  `EC2_API_COUNTER` and `DUPLICATE_METRICS_FILTERED_COUNTER`.

## Example

```python
import logging
from datetime import datetime, timezone

from cwpromutil.metrics import PrometheusCollector
from cwpromutil.migrate import (
    CloudwatchData,
    CloudwatchMetricResult,
    Dimension,
    GetMetricDataResult,
    ScrapeContext,
    build_metrics,
    ensure_label_consistency_and_remove_duplicates,
)

logger = logging.getLogger("exporter")
ts = datetime(2024, 1, 1, tzinfo=timezone.utc)

results = [
    CloudwatchMetricResult(
        context=ScrapeContext(region="us-east-1", account_id="000000000000"),
        data=[
            CloudwatchData(
                metric_name="CPUUtilization",
                namespace="AWS/ElastiCache",
                resource_name="arn:aws:elasticache:us-east-1:000000000000:cluster:demo",
                dimensions=[Dimension(name="CacheClusterId", value="demo")],
                get_metric_data_result=GetMetricDataResult(
                    statistic="Average", datapoint=1.0, timestamp=ts
                ),
            )
        ],
    )
]

metrics, observed = build_metrics(results, False, logger)
metrics = ensure_label_consistency_and_remove_duplicates(metrics, observed)
print(PrometheusCollector(metrics).render())
```

This prints:

```
# HELP aws_elasticache_cpuutilization_average Help is not implemented yet.
# TYPE aws_elasticache_cpuutilization_average gauge
aws_elasticache_cpuutilization_average{account_id="000000000000",dimension_CacheClusterId="demo",name="arn:aws:elasticache:us-east-1:000000000000:cluster:demo",region="us-east-1"} 1
```

## What it does not do

The package only converts and renders data it is given. It does not call
CloudWatch or any other AWS API, does not discover or tag resources, has
no configuration file, no command-line program and no HTTP server to
expose `/metrics`. The API counters in `cwpromutil.metrics` are provided
for the caller to increment; apart from the duplicate counter, nothing in
the package increments them.

## Running the tests

```
pip install -e .[test]
pytest
```