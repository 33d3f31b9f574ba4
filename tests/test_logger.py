import json
import logging

from envgate.logger import CustomJsonFormatter


def test_json_formatter_fields():
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        static_fields={"service": "envgate"},
    )
    record = logging.LogRecord(
        "envgate.services.purge", logging.WARNING, __file__, 1,
        "terminate failed %s", ("my-app",), None,
    )

    data = json.loads(formatter.format(record))

    assert data["level"] == "WARNING"
    assert data["name"] == "envgate.services.purge"
    assert data["message"] == "terminate failed my-app"
    assert data["service"] == "envgate"
    assert data["timestamp"].endswith("+00:00")
