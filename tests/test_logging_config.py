import json
import logging

from taskflow_webhooks.logging_config import JSONFormatter


def test_json_formatter_carries_extra_fields():
    record = logging.LogRecord("taskflow_webhooks.test", logging.WARNING, __file__, 1, "rejected %s", ("x",), None)
    record.provider = "github"
    data = json.loads(JSONFormatter().format(record))
    assert data["level"] == "WARNING"
    assert data["message"] == "rejected x"
    assert data["provider"] == "github"
    assert "args" not in data
