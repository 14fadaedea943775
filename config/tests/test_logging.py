import json
import logging
from decimal import Decimal

from config.logging import JsonFormatter, SamplingFilter


def _record(msg, level=logging.INFO, **extra):
    record = logging.LogRecord("erpcore.orders", level, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_flattens_extras():
    line = JsonFormatter().format(_record("order.checked_out", event="order.checked_out", total=Decimal("236.00")))

    payload = json.loads(line)
    assert payload["message"] == "order.checked_out"
    assert payload["name"] == "erpcore.orders"
    assert payload["level"] == "INFO"
    assert payload["total"] == "236.00"
    assert payload["time"].endswith("Z")


def test_sampling_filter_never_drops_allowed_events():
    sampler = SamplingFilter(rate=0.0, allow_events=["order_status_changed"])

    assert sampler.filter(_record("order_status_changed", event="order_status_changed"))
    assert not sampler.filter(_record("order.checked_out", event="order.checked_out"))
    assert sampler.filter(_record("inventory.drift_corrected", level=logging.WARNING))


def test_sampling_rate_is_clamped():
    assert SamplingFilter(rate=5).rate == 1.0
    assert SamplingFilter(rate=-1).rate == 0.0
