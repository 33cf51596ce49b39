import json
import logging

from manifest_sync.utils.structured_logger import StructuredLogger, create_event_logger


def read_records(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_json_records_carry_event_and_context(tmp_path):
    events = create_event_logger(tmp_path, enable_json=True)
    events.run_started("https://example.com/index.json", "data", 4)
    events.file_failed("bin/x.jar", "404")
    events.logger.close()

    records = read_records(events.logger.json_log_path)

    assert [r["event"] for r in records] == ["run_started", "file_failed"]
    assert records[0]["max_workers"] == 4
    assert records[1]["level"] == "ERROR"
    assert records[1]["path"] == "bin/x.jar"
    assert records[0]["session_id"] == records[1]["session_id"]


def test_json_disabled_without_directory():
    logger = StructuredLogger("manifest_sync.test", log_dir=None)
    assert not logger.enable_json
    assert logger.json_log_path is None
    logger.info("noop")


def test_writes_after_close_are_dropped(tmp_path):
    with StructuredLogger("manifest_sync.test", log_dir=tmp_path) as logger:
        logger.info("first")
    logger.info("second")

    assert [r["event"] for r in read_records(logger.json_log_path)] == ["first"]


def test_human_readable_line(caplog):
    logger = StructuredLogger("manifest_sync.test", log_dir=None)
    with caplog.at_level(logging.INFO, logger="manifest_sync.test"):
        logger.info("file_downloaded", path="a.txt", size_bytes=3)

    assert "[file_downloaded] path=a.txt size_bytes=3" in caplog.text
