import json
import logging
from decimal import Decimal

import pytest
from config.logging import JsonFormatter, SamplingFilter


def _record(msg="order.created", level=logging.INFO, **extra):
    record = logging.LogRecord("storefront.orders", level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extras():
    line = JsonFormatter().format(_record(event="order.created", order_id=7, total=Decimal("15.00")))

    payload = json.loads(line)
    assert payload["name"] == "storefront.orders"
    assert payload["level"] == "INFO"
    assert payload["message"] == "order.created"
    assert payload["event"] == "order.created"
    assert payload["order_id"] == 7
    assert payload["total"] == "15.00"
    assert payload["time"].endswith("Z")
    assert "pathname" not in payload


def test_sampling_filter_drops_info_at_zero_rate():
    f = SamplingFilter(rate=0.0, levels=["INFO"])

    assert f.filter(_record()) is False
    assert f.filter(_record(level=logging.WARNING)) is True


@pytest.mark.parametrize(
    "record",
    [
        _record(msg="order.status_changed"),
        _record(msg="anything", event="order.status_changed"),
    ],
)
def test_sampling_filter_never_drops_allowed_events(record):
    f = SamplingFilter(rate=0.0, levels=["INFO"], allow_events=["order.status_changed"])

    assert f.filter(record) is True


def test_sampling_filter_clamps_rate():
    assert SamplingFilter(rate=5).rate == 1.0
    assert SamplingFilter(rate=-1).rate == 0.0
