"""Wire models for report payloads and endpoint responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ErrorSection(_WireModel):
    """Core error information, present at every privacy level."""
    message: str
    stack: str | None = None
    type: str
    source: str


class AttributionSection(_WireModel):
    extension_id: str = Field(alias="extensionId")
    confidence: str
    method: str
    source: str


class SubsystemInfo(_WireModel):
    id: str
    version: str


class ExtensionVersion(_WireModel):
    id: str
    version: str


class HostSection(_WireModel):
    """Host facts; subsystem/extensions from standard, scene from detailed."""
    version: str
    subsystem: SubsystemInfo | None = None
    extensions: list[ExtensionVersion] | None = None
    scene: str | None = None


class ClientSection(_WireModel):
    session_id: str = Field(alias="sessionId")
    runtime: str | None = None  # detailed only


class MetaSection(_WireModel):
    timestamp: str
    privacy_level: str = Field(alias="privacyLevel")
    reporter_version: str = Field(alias="reporterVersion")


class ReportPayload(_WireModel):
    """JSON body POSTed to an endpoint. Built per send, never stored."""
    error: ErrorSection
    attribution: AttributionSection
    host: HostSection
    client: ClientSection | None = None
    meta: MetaSection
    extension_context: dict[str, Any] | None = Field(alias="extensionContext", default=None)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting absent optional sections."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ReportResponse(_WireModel):
    """Standard endpoint response body."""
    success: bool
    event_id: str | None = Field(alias="eventId", default=None)
    message: str | None = None
    timestamp: str | None = None
    endpoint: str | None = None
    retry_after: float | None = Field(alias="retryAfter", default=None)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
