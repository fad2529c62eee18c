import json
import logging

from knowledge_hub.lib.logger import ConsoleFormatter, StructuredFormatter


def make_record(**extra):
    record = logging.LogRecord("knowledge_hub.test", logging.INFO, __file__, 1, "Updated document", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_emits_knowledge_fields():
    line = StructuredFormatter().format(make_record(document_id="d1", version=3, user_id=None))

    entry = json.loads(line)
    assert entry["msg"] == "Updated document"
    assert entry["document_id"] == "d1"
    assert entry["version"] == 3
    assert "user_id" not in entry


def test_console_formatter_appends_fields():
    line = ConsoleFormatter().format(make_record(document_id="d1"))

    assert "knowledge_hub.test: Updated document" in line
    assert line.endswith("document_id=d1")
