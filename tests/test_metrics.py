import math
from datetime import datetime, timezone

import pytest

from cwpromutil.metrics import (
    CLOUDWATCH_API_COUNTER,
    Counter,
    CounterVec,
    PrometheusCollector,
    PrometheusMetric,
)


def test_counter_inc_accumulates():
    counter = Counter("c_total", "help")
    counter.inc()
    counter.inc()
    assert counter.value == 2.0


def test_counter_rejects_negative():
    counter = Counter("c_total")
    with pytest.raises(ValueError):
        counter.inc(-1)
    assert counter.value == 0.0


def test_counter_render_has_type_and_sample():
    counter = Counter("c_total", "some help")
    counter.inc()
    lines = counter.render().splitlines()
    assert lines[0] == "# HELP c_total some help"
    assert lines[1] == "# TYPE c_total counter"
    assert lines[2].startswith("c_total ")


def test_counter_vec_tracks_labels_separately():
    vec = CounterVec("requests_total", "help", "api_name")
    vec.inc("GetMetricData")
    vec.inc("GetMetricData")
    vec.inc("ListMetrics")
    assert vec.value("GetMetricData") == 2.0
    assert vec.value("ListMetrics") == 1.0
    assert vec.value("missing") == 0.0
    with pytest.raises(ValueError):
        vec.inc("ListMetrics", -2)


def test_counter_vec_render_contains_each_label():
    vec = CounterVec("requests_total", "help", "api_name")
    vec.inc("b")
    vec.inc("a")
    body = [line for line in vec.render().splitlines() if not line.startswith("#")]
    assert [line.split(" ")[0] for line in body] == [
        'requests_total{api_name="a"}',
        'requests_total{api_name="b"}',
    ]


def test_global_api_counter_increments():
    before = CLOUDWATCH_API_COUNTER.value("ListMetrics")
    CLOUDWATCH_API_COUNTER.inc("ListMetrics")
    assert CLOUDWATCH_API_COUNTER.value("ListMetrics") == before + 1
    assert "yace_cloudwatch_requests_total" in CLOUDWATCH_API_COUNTER.render()


def test_metric_render_sorts_labels():
    metric = PrometheusMetric(name="m", labels={"b": "2", "a": "1"}, value=1.0)
    assert metric.render() == 'm{a="1",b="2"} 1'


def test_metric_render_escapes_label_values():
    metric = PrometheusMetric(name="m", labels={"a": 'x"y\\z\n'}, value=0.0)
    rendered = metric.render()
    assert '\\"' in rendered
    assert "\\\\" in rendered
    assert "\n" not in rendered


def test_metric_render_nan():
    metric = PrometheusMetric(name="m", value=math.nan)
    assert metric.render().endswith(" NaN")


def test_metric_render_timestamp_only_when_included():
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    without = PrometheusMetric(name="m", value=4.0, timestamp=ts)
    with_ts = PrometheusMetric(name="m", value=4.0, timestamp=ts, include_timestamp=True)
    assert with_ts.render() == without.render() + " 1704067200000"


def test_collector_collect_preserves_order():
    metrics = [PrometheusMetric(name="a"), PrometheusMetric(name="b"), PrometheusMetric(name="a")]
    collector = PrometheusCollector(metrics)
    assert list(collector.collect()) == metrics


def test_collector_render_groups_families():
    metrics = [
        PrometheusMetric(name="a", labels={"x": "1"}),
        PrometheusMetric(name="b"),
        PrometheusMetric(name="a", labels={"x": "2"}),
    ]
    text = PrometheusCollector(metrics).render()
    lines = text.splitlines()
    assert lines.count("# TYPE a gauge") == 1
    assert lines.count("# TYPE b gauge") == 1
    assert "# HELP a Help is not implemented yet." in lines
    type_a = lines.index("# TYPE a gauge")
    assert lines[type_a + 1].startswith('a{x="1"}')
    assert lines[type_a + 2].startswith('a{x="2"}')