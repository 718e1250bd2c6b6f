"""Tests for the ErrorsAndEchoes public API, end to end through capture and reporting."""

import sys

import pytest

from conftest import DEMO_ENDPOINT_URL
from echoes.api import ErrorsAndEchoes
from echoes.models import CanonicalError, PrivacyLevel, SourceKind
from echoes.reporting import ReportOutcome, SuppressionReason, inline_dispatcher
from echoes.schemas import validate_payload

DEMO_STACK = (
    "Traceback (most recent call last):\n"
    '  File "/srv/host/extensions/demo-ext/scripts/main.py", line 42, in render\n'
    "    sheet.draw()\n"
    "TypeError: boom\n"
)


def _demo_error(message="boom"):
    return CanonicalError(message=message, type="TypeError", source_kind=SourceKind.SCRIPT, stack=DEMO_STACK)


@pytest.fixture
def quiet_excepthook(monkeypatch):
    monkeypatch.setattr(sys, "excepthook", lambda *args: None)


class TestLifecycle:
    """Test that capture follows consent."""

    def test_start_without_consent(self, echoes):
        assert echoes.start() is False
        assert not echoes.is_listening

    def test_consent_starts_and_revoke_stops(self, echoes, quiet_excepthook):
        echoes.set_consent(True, PrivacyLevel.STANDARD)
        assert echoes.is_listening
        echoes.revoke_consent()
        assert not echoes.is_listening
        assert echoes.get_privacy_level() == PrivacyLevel.STANDARD

    def test_start_with_stored_consent(self, echoes, quiet_excepthook):
        echoes.consent.set_consent(True)
        assert echoes.start() is True

    def test_declined_consent_stops(self, echoes, quiet_excepthook):
        echoes.set_consent(True)
        echoes.set_consent(False)
        assert not echoes.is_listening
        assert echoes.has_consent() is False


class TestEndToEnd:
    """Test captured errors flowing to the configured endpoint."""

    def test_demo_extension_report(self, echoes, transport):
        """Test the full path for an extension with a context provider."""
        echoes.set_consent(True, PrivacyLevel.STANDARD)
        assert echoes.register("demo-ext", context_provider=lambda: {"foo": 1})

        ticket = echoes.report(_demo_error())
        assert ticket.outcome == ReportOutcome.SENT
        assert len(transport.calls) == 1
        assert transport.calls[0]["url"] == DEMO_ENDPOINT_URL

        body = transport.bodies[0]
        assert body["attribution"]["extensionId"] == "demo-ext"
        assert body["attribution"]["confidence"] == "high"
        assert body["attribution"]["method"] == "stack-trace"
        assert body["extensionContext"] == {"foo": 1}
        assert body["meta"]["privacyLevel"] == "standard"
        assert body["client"]["sessionId"].startswith("anon-")
        assert validate_payload(body) == []

    def test_captured_script_error(self, echoes, transport, quiet_excepthook):
        echoes.set_consent(True)
        try:
            exec(compile("raise ValueError('from extension')", "/srv/host/extensions/demo-ext/main.py", "exec"))
        except ValueError:
            sys.excepthook(*sys.exc_info())

        assert len(transport.calls) == 1
        body = transport.bodies[0]
        assert body["error"]["source"] == "script"
        assert body["attribution"]["extensionId"] == "demo-ext"

    def test_captured_hook_error(self, echoes, hooks, transport, quiet_excepthook):
        echoes.set_consent(True)
        hooks.on("renderSheet", lambda: exec(compile(
            "raise KeyError('missing')", "/srv/host/extensions/demo-ext/sheet.py", "exec")))

        with pytest.raises(KeyError):
            hooks.call("renderSheet")

        body = transport.bodies[0]
        assert body["error"]["source"] == "hook:renderSheet"
        assert body["attribution"]["extensionId"] == "demo-ext"

    def test_duplicate_errors_send_once(self, echoes, transport):
        echoes.set_consent(True)
        echoes.report(_demo_error())
        ticket = echoes.report(_demo_error())
        assert ticket.reason == SuppressionReason.DUPLICATE
        assert len(transport.calls) == 1

    def test_no_consent_nothing_sent(self, echoes, transport):
        ticket = echoes.report(_demo_error())
        assert ticket.reason == SuppressionReason.NO_CONSENT
        assert transport.calls == []

    def test_filter_suppresses(self, echoes, transport):
        echoes.set_consent(True)
        echoes.register("demo-ext", error_filter=lambda error: True)
        assert echoes.report(_demo_error()).reason == SuppressionReason.FILTERED
        assert transport.calls == []

    def test_broken_provider_does_not_block_report(self, echoes, transport):
        echoes.set_consent(True)

        def broken():
            raise RuntimeError("provider broke")

        echoes.register("demo-ext", context_provider=broken)
        assert echoes.report(_demo_error()).outcome == ReportOutcome.SENT
        assert "extensionContext" not in transport.bodies[0]
        assert echoes.registry.get("demo-ext").provider_disabled

    def test_unattributed_error_has_no_endpoint(self, echoes, transport):
        echoes.set_consent(True)
        ticket = echoes.report(ValueError("who knows"))
        assert ticket.extension_id == "unknown"
        assert ticket.reason == SuppressionReason.NO_ENDPOINT
        assert transport.calls == []


class TestManualReport:
    """Test report() with an explicit extension id."""

    def test_override_attribution(self, echoes, transport):
        echoes.set_consent(True)
        ticket = echoes.report(RuntimeError("manual"), extension_id="demo-ext", context={"step": 3})

        assert ticket.outcome == ReportOutcome.SENT
        body = transport.bodies[0]
        assert body["attribution"] == {
            "extensionId": "demo-ext",
            "confidence": "none",
            "method": "unknown",
            "source": "manual",
        }
        assert body["error"]["type"] == "RuntimeError"
        assert body["extensionContext"] == {"step": 3}

    def test_report_never_raises(self, echoes):
        echoes.set_consent(True)
        ticket = echoes.report("not an exception")
        assert ticket.outcome == ReportOutcome.FAILED


class TestStatsAndReset:
    """Test statistics and reset."""

    def test_stats(self, echoes):
        echoes.set_consent(True)
        echoes.report(_demo_error())
        stats = echoes.get_stats()
        assert stats["totalReports"] == 1
        assert stats["recentReports"] == 1

    def test_reset(self, echoes, transport):
        echoes.set_consent(True)
        echoes.register("demo-ext", context_provider=lambda: {"foo": 1})
        echoes.report(_demo_error())

        echoes.reset()
        assert not echoes.is_listening
        assert echoes.has_consent() is False
        assert echoes.registry.all() == []
        assert echoes.get_stats() == {"totalReports": 0, "recentReports": 0}

    def test_endpoint_consent(self, echoes, transport):
        echoes.set_consent(True)
        echoes.set_endpoint_consent(DEMO_ENDPOINT_URL, False)
        assert echoes.report(_demo_error()).reason == SuppressionReason.ENDPOINT_CONSENT

    def test_test_endpoint(self, echoes, transport):
        assert echoes.test_endpoint(DEMO_ENDPOINT_URL) is True
        assert transport.calls[0]["url"].endswith("/test/demo")


class TestDefaults:
    """Test construction without injected collaborators."""

    def test_default_construction(self):
        echoes = ErrorsAndEchoes(dispatcher=inline_dispatcher)
        assert echoes.has_consent() is False
        assert echoes.config.endpoints == []
        assert echoes.host.version == "0.0.0"
