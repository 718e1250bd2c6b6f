"""Error attribution engine.

Decides which extension is responsible for an error. Strategies run in
order and the first match wins:

1. stack-trace path analysis (high)
2. hook-context: re-scan a fresh stack taken at the hook interception point (medium)
3. pattern signatures held by the registry (low)
4. active-extension: scan the current call stack, only outside hook context (medium)
5. unknown (none)

The engine reads registry patterns through an immutable snapshot, keeps no
state of its own between calls and never raises.
"""

import logging
import re
import traceback
from collections.abc import Callable
from dataclasses import dataclass

from echoes.models import (
    Attribution,
    AttributionMethod,
    CanonicalError,
    Confidence,
    ErrorContext,
    SourceKind,
    calculate_confidence_score,
)
from echoes.registry import ExtensionRegistry

logger = logging.getLogger(__name__)

StackProvider = Callable[[], str]

# Forward slash, backslash, URL-encoded slash
_SEP = r"(?:/|\\|%2[fF])"
_PY_FRAME = re.compile(r'File "(?P<file>[^"]+)", line (?P<line>\d+)')
_GENERIC_FRAME = re.compile(r"(?P<file>[^\s()\"'/\\]+\.\w+):(?P<line>\d+)(?::(?P<col>\d+))?")


def current_stack() -> str:
    """Stack of the calling thread at this point, as traceback text."""
    return "".join(traceback.format_stack())


@dataclass(frozen=True)
class DetailedAttribution:
    """Attribution plus the innermost frame location parsed from the stack."""
    attribution: Attribution
    file_name: str | None = None
    line_number: int | None = None
    column_number: int | None = None


class AttributionEngine:
    """Resolves (error, context) to the responsible extension."""

    def __init__(self, registry: ExtensionRegistry | None = None,
                 extension_root: str = "extensions",
                 stack_provider: StackProvider = current_stack):
        self.registry = registry
        self.extension_root = extension_root
        self.stack_provider = stack_provider
        self._root_pattern = re.compile(
            rf"(?:^|[\s\"'(@]|{_SEP}){re.escape(extension_root)}{_SEP}"
            rf"(?P<extension>[^/\\%\s\"'<>]+){_SEP}"
        )

    def attribute(self, error: CanonicalError, context: ErrorContext) -> Attribution:
        """Attribute an error to an extension. Any internal fault yields ``unknown``."""
        try:
            return self._attribute(error, context)
        except Exception as e:
            logger.debug(f"Attribution failed, falling back to unknown: {e}")
            return Attribution.unknown(context.source_label, context.source_kind)

    def _attribute(self, error: CanonicalError, context: ErrorContext) -> Attribution:
        extension_id = self.parse_stack(error.stack)
        if extension_id:
            return self._result(extension_id, Confidence.HIGH, AttributionMethod.STACK_TRACE, context)

        if context.source_kind == SourceKind.HOOK and context.hook_name:
            extension_id = self.parse_stack(self._fresh_stack())
            if extension_id:
                return self._result(extension_id, Confidence.MEDIUM,
                                    AttributionMethod.HOOK_CONTEXT, context)

        extension_id = self.match_patterns(error)
        if extension_id:
            return self._result(extension_id, Confidence.LOW, AttributionMethod.PATTERN_MATCH, context)

        if not context.hook_name:
            extension_id = self.parse_stack(self._fresh_stack())
            if extension_id:
                return self._result(extension_id, Confidence.MEDIUM,
                                    AttributionMethod.ACTIVE_EXTENSION, context)

        return Attribution.unknown(context.source_label, context.source_kind)

    def _result(self, extension_id: str, confidence: Confidence, method: AttributionMethod,
                context: ErrorContext) -> Attribution:
        return Attribution(
            extension_id=extension_id,
            confidence=confidence,
            method=method,
            source=context.source_label,
            score=calculate_confidence_score(method, context.source_kind),
        )

    def _fresh_stack(self) -> str:
        try:
            return self.stack_provider() or ""
        except Exception as e:
            logger.debug(f"Stack provider failed: {e}")
            return ""

    def parse_stack(self, stack: str | None) -> str | None:
        """First extension id found under the extension root in stack text."""
        if not stack:
            return None
        match = self._root_pattern.search(stack)
        return match.group("extension") if match else None

    def match_patterns(self, error: CanonicalError) -> str | None:
        """First registered signature matching the error's message and stack."""
        if self.registry is None:
            return None
        search_text = f"{error.message or ''} {error.stack or ''}"
        for signature in self.registry.get_patterns():
            if signature.pattern.search(search_text):
                return signature.extension_id
        return None

    def detailed_attribution(self, error: CanonicalError, context: ErrorContext) -> DetailedAttribution:
        """Attribution plus file/line/column of the innermost frame, when parsable."""
        attribution = self.attribute(error, context)
        file_name, line_number, column_number = extract_file_info(error.stack)
        return DetailedAttribution(attribution, file_name, line_number, column_number)


def extract_file_info(stack: str | None) -> tuple[str | None, int | None, int | None]:
    """File name, line and column of the innermost frame in ``stack``."""
    if not stack:
        return None, None, None
    frames = list(_PY_FRAME.finditer(stack))
    if frames:
        innermost = frames[-1]
        return re.split(r"[/\\]", innermost.group("file"))[-1], int(innermost.group("line")), None
    match = _GENERIC_FRAME.search(stack)
    if match:
        column = match.group("col")
        return match.group("file"), int(match.group("line")), int(column) if column else None
    return None, None, None
