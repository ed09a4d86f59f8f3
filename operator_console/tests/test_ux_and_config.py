import json
import logging

import pytest
from pydantic import ValidationError

from conftest import make_settings

from operator_console.engine.config import get_settings, safe_error_detail, settings_public_summary
from operator_console.engine.failures import TurnFailure, TurnFailureKind, failure_from_rejection
from operator_console.engine.observability import configure_logging, counter, new_request_id, safe_redact, structured_log
from operator_console.engine.perf import build_headers, build_timeout
from operator_console.engine.streaming import QuotaExceededError, RejectionKind, TransportRejection
from operator_console.engine.ux import (
    GENERIC_FAILURE_DESCRIPTION,
    NoticeAction,
    UXState,
    build_notice,
    decide_ux_state,
)


def test_quota_failure_maps_to_upgrade_notice():
    failure = failure_from_rejection(QuotaExceededError("You used all 50 AI messages", status_code=402))
    notice = build_notice(failure)
    assert failure.kind == TurnFailureKind.QUOTA_EXCEEDED
    assert notice.ux_state == UXState.QUOTA_EXCEEDED
    assert notice.action == NoticeAction.UPGRADE
    assert notice.description == "You used all 50 AI messages"


def test_rejection_notice_keeps_backend_text_stream_error_does_not():
    rejected = build_notice(failure_from_rejection(TransportRejection("Message too long", status_code=400)))
    streamed = build_notice(TurnFailure(TurnFailureKind.STREAM_ERROR, "upstream model exploded"))
    assert rejected.description == "Message too long"
    assert streamed.description == GENERIC_FAILURE_DESCRIPTION
    assert not rejected.is_upgrade_prompt and not streamed.is_upgrade_prompt


@pytest.mark.parametrize(
    "failure, state",
    [
        (None, UXState.OK),
        (TurnFailure(TurnFailureKind.REJECTED, "x", 401, RejectionKind.AUTH), UXState.BLOCKED),
        (TurnFailure(TurnFailureKind.REJECTED, "x", None, RejectionKind.NETWORK), UXState.DEGRADED),
        (TurnFailure(TurnFailureKind.TIMEOUT, "x"), UXState.DEGRADED),
        (TurnFailure(TurnFailureKind.EMPTY_RESPONSE, "x"), UXState.ERROR),
    ],
)
def test_decide_ux_state(failure, state):
    assert decide_ux_state(failure) == state


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("CONSOLE_API_BASE_URL", "https://api.example.test/")
    monkeypatch.setenv("TURN_TIMEOUT_MS", "1500")
    monkeypatch.setenv("READ_TIMEOUT_SECONDS", "-3")
    get_settings.cache_clear()
    try:
        s = get_settings()
        assert s.api_base_url == "https://api.example.test"
        assert s.turn_timeout == 1500
        assert s.read_timeout is None
    finally:
        get_settings.cache_clear()


def test_empty_frame_prefix_is_invalid():
    with pytest.raises(ValidationError):
        make_settings(FRAME_PREFIX="  ")


def test_public_summary_hides_token():
    s = make_settings(CONSOLE_API_TOKEN="sk-supersecret123456")
    summary = settings_public_summary(s)
    assert summary["has_api_token"] is True
    assert "sk-supersecret123456" not in json.dumps(summary)


def test_client_headers_and_timeouts():
    s = make_settings(CONSOLE_API_TOKEN="tok", CONNECT_TIMEOUT_SECONDS="2.5")
    headers = build_headers(s)
    timeout = build_timeout(s)
    assert headers["Authorization"] == "Bearer tok"
    assert timeout.connect == 2.5
    assert timeout.read is None


def test_safe_error_detail_redacts_and_caps():
    detail = safe_error_detail(RuntimeError("Authorization: Bearer abc.def " + "x" * 500))
    assert "abc.def" not in detail
    assert len(detail) == 200


def test_structured_log_never_carries_conversation_text(caplog):
    caplog.set_level(logging.INFO, logger="operator_console.engine.observability.logging")
    structured_log({"name": "turn", "text": "secret user words", "content": "reply", "len": 3})
    assert "secret user words" not in caplog.text
    assert '"len":3' in caplog.text
    assert safe_redact({"prompt": "p", "ok": 1}) == {"ok": 1}


def test_counter_emits_metric_line(caplog):
    caplog.set_level(logging.INFO, logger="operator_console.engine.observability.logging")
    counter("turn.settled", labels={"hidden": "false"})
    line = json.loads(caplog.records[-1].getMessage())
    assert line["metric_type"] == "counter"
    assert line["name"] == "turn.settled"


def test_request_id_reuses_explicit_value():
    assert new_request_id("  abc ") == "abc"
    assert new_request_id() != new_request_id()


def test_structured_log_drops_credentials():
    assert safe_redact({"authorization": "Bearer x", "api_token": "t", "kind": "QUOTA"}) == {"kind": "QUOTA"}


def test_configure_logging_uses_settings_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    get_settings.cache_clear()
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    try:
        configure_logging()
        assert root.level == logging.DEBUG
        configure_logging("warning")
        assert root.level == logging.WARNING
    finally:
        root.handlers[:] = saved[1]
        root.setLevel(saved[0])
        get_settings.cache_clear()
