import json
import logging

from mindful.core.logging import JsonFormatter, setup_logging


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("mindful.test", logging.WARNING, __file__, 1, "hello %s", ("there",), None)
    record.provider = "gemini"
    out = json.loads(JsonFormatter().format(record))
    assert out["msg"] == "hello there"
    assert out["level"] == "WARNING"
    assert out["name"] == "mindful.test"
    assert out["provider"] == "gemini"


def test_setup_logging_is_idempotent():
    logger = logging.getLogger("mindful")
    previous = logger.level
    try:
        setup_logging("DEBUG", json_format=True)
        setup_logging("INFO")
        ours = [h for h in logger.handlers if getattr(h, "_mindful", False)]
        assert len(ours) == 1
        assert logger.level == logging.INFO
    finally:
        for h in [h for h in logger.handlers if getattr(h, "_mindful", False)]:
            logger.removeHandler(h)
        logger.setLevel(previous)
