import json
import logging

import pytest

from jobtracker.utils.logger import JSONFormatter, get_logger, log_tracker_event


@pytest.fixture()
def audit_records():
    records: list[logging.LogRecord] = []
    handler = logging.Handler()
    handler.emit = records.append  # type: ignore[method-assign]
    audit = logging.getLogger("jobtracker.audit")
    audit.addHandler(handler)
    audit.setLevel(logging.INFO)
    yield records
    audit.removeHandler(handler)
    audit.setLevel(logging.NOTSET)


def test_get_logger_namespaces_under_jobtracker():
    assert get_logger("worker").logger.name == "jobtracker.worker"
    assert get_logger("jobtracker.jobs.cache").logger.name == "jobtracker.jobs.cache"


def test_tracker_event_drops_empty_fields(audit_records):
    log_tracker_event("suppressed", "sample_job/a", {"job": "SampleJob", "scheduled_at": None})

    (record,) = audit_records
    assert record.getMessage() == "Tracker event: suppressed"
    assert record.extra_data == {"event_type": "suppressed", "key": "sample_job/a", "job": "SampleJob"}


def test_json_formatter_merges_fields_and_exception(audit_records):
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        get_logger("audit").error("Tracker cleanup failed", key="k", exc_info=True)

    entry = json.loads(JSONFormatter().format(audit_records[0]))
    assert entry["level"] == "ERROR"
    assert entry["logger"] == "jobtracker.audit"
    assert entry["key"] == "k"
    assert "RuntimeError: boom" in entry["exception"]
