"""Unit tests for error, attribution and privacy models."""

import pytest

from echoes.models import (
    Attribution,
    AttributionMethod,
    CanonicalError,
    Confidence,
    ErrorContext,
    PrivacyLevel,
    SourceKind,
    calculate_confidence_score,
)


def _raise_value_error():
    raise ValueError("bad value")


class TestCanonicalError:
    """Test CanonicalError construction."""

    def test_from_raised_exception(self):
        """Test that a raised exception carries its traceback text."""
        try:
            _raise_value_error()
        except ValueError as e:
            error = CanonicalError.from_exception(e, SourceKind.SCRIPT)

        assert error.message == "bad value"
        assert error.type == "ValueError"
        assert error.source_kind == SourceKind.SCRIPT
        assert "Traceback (most recent call last)" in error.stack
        assert "_raise_value_error" in error.stack

    def test_from_unraised_exception_has_no_stack(self):
        """Test an exception object that was never raised."""
        error = CanonicalError.from_exception(RuntimeError("never raised"), SourceKind.MANUAL)
        assert error.stack is None
        assert error.type == "RuntimeError"

    def test_from_message(self):
        """Test errors without an exception object."""
        error = CanonicalError.from_message("", SourceKind.PROMISE)
        assert error.message == "Unknown error"
        assert error.type == "Error"

    def test_is_immutable(self):
        """Test that captured errors cannot be modified."""
        error = CanonicalError.from_message("x", SourceKind.LOG)
        with pytest.raises(AttributeError):
            error.message = "y"


class TestErrorContext:
    """Test ErrorContext source labels."""

    def test_hook_source_label(self):
        context = ErrorContext(source_kind=SourceKind.HOOK, timestamp=0, hook_name="renderSheet")
        assert context.source_label == "hook:renderSheet"

    def test_plain_source_label(self):
        context = ErrorContext(source_kind=SourceKind.PROMISE, timestamp=0)
        assert context.source_label == "promise"


class TestConfidenceScore:
    """Test numeric confidence scoring."""

    def test_score_table(self):
        """Test base score plus source bonus."""
        assert calculate_confidence_score(AttributionMethod.STACK_TRACE, SourceKind.SCRIPT) == 0.9
        assert calculate_confidence_score(AttributionMethod.HOOK_CONTEXT, SourceKind.HOOK) == 0.65
        assert calculate_confidence_score(AttributionMethod.PATTERN_MATCH, SourceKind.LOG) == 0.45
        assert calculate_confidence_score(AttributionMethod.ACTIVE_EXTENSION, SourceKind.MANUAL) == 0.6
        assert calculate_confidence_score(AttributionMethod.UNKNOWN, SourceKind.MANUAL) == 0.1

    def test_score_never_exceeds_one(self):
        for method in AttributionMethod:
            for source_kind in SourceKind:
                assert 0 <= calculate_confidence_score(method, source_kind) <= 1.0

    def test_unknown_attribution(self):
        attribution = Attribution.unknown("promise", SourceKind.PROMISE)
        assert attribution.is_unknown
        assert attribution.confidence == Confidence.NONE
        assert attribution.method == AttributionMethod.UNKNOWN
        assert attribution.score == 0.2

    def test_to_dict_uses_wire_names(self):
        attribution = Attribution("demo-ext", Confidence.HIGH, AttributionMethod.STACK_TRACE, "script", 0.9)
        assert attribution.to_dict() == {
            "extensionId": "demo-ext",
            "confidence": "high",
            "method": "stack-trace",
            "source": "script",
        }


class TestPrivacyLevel:
    """Test privacy level nesting."""

    def test_levels_are_nested(self):
        assert PrivacyLevel.DETAILED.includes(PrivacyLevel.STANDARD)
        assert PrivacyLevel.STANDARD.includes(PrivacyLevel.MINIMAL)
        assert not PrivacyLevel.MINIMAL.includes(PrivacyLevel.STANDARD)

    def test_string_values(self):
        assert PrivacyLevel("detailed") is PrivacyLevel.DETAILED
        with pytest.raises(ValueError):
            PrivacyLevel("everything")
