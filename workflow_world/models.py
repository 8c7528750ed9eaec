"""Canonical records persisted by a World and the request shapes that mutate them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .error_codec import StructuredError, decode_error
from .errors import ValidationError
from .resolution import ResolveData
from .serialization import (
    SPEC_VERSION_CURRENT,
    SPEC_VERSION_LEGACY,
    OptionalPayload,
    WritePayload,
    decode_wire_payload,
)

RunStatus = Literal["pending", "running", "completed", "failed", "cancelled"]
StepStatus = Literal["pending", "running", "completed", "failed", "cancelled"]
SortOrder = Literal["asc", "desc"]

TERMINAL_STATUSES = frozenset({"completed", "failed", "cancelled"})

RecordT = TypeVar("RecordT", bound="PayloadRecord")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorldModel(BaseModel):
    """Base model: snake_case attributes, camelCase on every JSON wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-compatible wire/record form."""
        return self.model_dump(mode="json", by_alias=True)


class PayloadRecord(WorldModel):
    """A record carrying bulky payload fields written under a spec version."""

    payload_fields: ClassVar[tuple[str, ...]] = ()

    spec_version: int = SPEC_VERSION_CURRENT

    @model_validator(mode="before")
    @classmethod
    def _normalize_error(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "error" not in cls.model_fields:
            return data
        normalized = dict(data)
        error_ref = normalized.pop("errorRef", normalized.pop("error_ref", None))
        normalized["error"] = decode_error(normalized.get("error"), error_ref)
        return normalized

    @classmethod
    def from_record(cls: type[RecordT], record: dict[str, Any]) -> RecordT:
        """Validate the JSON wire/record form produced by :meth:`to_record`.

        Records without ``specVersion`` predate payload versioning and are
        read as legacy data.
        """
        decoded = dict(record)
        spec_version = decoded.pop("spec_version", None)
        spec_version = decoded.get("specVersion", spec_version)
        if spec_version is None:
            spec_version = SPEC_VERSION_LEGACY
        decoded["specVersion"] = spec_version
        for name in cls.payload_fields:
            for key in (to_camel(name), name):
                if key in decoded:
                    decoded[key] = decode_wire_payload(decoded[key], spec_version, key)
        return cls.model_validate(decoded)

    def _strip_payloads(self, variant: type[RecordT]) -> RecordT:
        values = {name: getattr(self, name) for name in type(self).model_fields}
        values.update(dict.fromkeys(self.payload_fields))
        return variant.model_validate(values)


# ----------------------------------------------------------------------
# Entities


class WorkflowRun(PayloadRecord):
    """One durable execution instance of a workflow."""

    payload_fields: ClassVar[tuple[str, ...]] = ("input", "output")

    run_id: str
    workflow_name: str
    deployment_id: Optional[str] = None
    status: RunStatus = "pending"
    input: OptionalPayload = None
    output: OptionalPayload = None
    error: Optional[StructuredError] = None
    execution_context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def without_data(self) -> WorkflowRunWithoutData:
        return self._strip_payloads(WorkflowRunWithoutData)


class WorkflowRunWithoutData(WorkflowRun):
    input: None = None
    output: None = None


class Step(PayloadRecord):
    """One unit of work inside a run, identified by ``(run_id, step_id)``."""

    payload_fields: ClassVar[tuple[str, ...]] = ("input", "output")

    run_id: str
    step_id: str
    step_name: str
    status: StepStatus = "pending"
    input: OptionalPayload = None
    output: OptionalPayload = None
    error: Optional[StructuredError] = None
    attempt: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def without_data(self) -> StepWithoutData:
        return self._strip_payloads(StepWithoutData)


class StepWithoutData(Step):
    input: None = None
    output: None = None


class Event(PayloadRecord):
    """Append-only record attached to a run."""

    payload_fields: ClassVar[tuple[str, ...]] = ("event_data",)

    event_id: str
    run_id: str
    event_type: str
    correlation_id: Optional[str] = None
    event_data: OptionalPayload = None
    created_at: datetime = Field(default_factory=utcnow)

    def without_data(self) -> EventWithoutData:
        return self._strip_payloads(EventWithoutData)


class EventWithoutData(Event):
    event_data: None = None


class Hook(PayloadRecord):
    """Durable resume point addressable by id or by token."""

    payload_fields: ClassVar[tuple[str, ...]] = ("metadata",)

    hook_id: str
    run_id: str
    token: str
    metadata: OptionalPayload = None
    created_at: datetime = Field(default_factory=utcnow)

    def without_data(self) -> HookWithoutData:
        return self._strip_payloads(HookWithoutData)


class HookWithoutData(Hook):
    metadata: None = None


# ----------------------------------------------------------------------
# Requests


class CreateWorkflowRunRequest(WorldModel):
    workflow_name: str
    deployment_id: Optional[str] = None
    input: WritePayload = None
    execution_context: dict[str, Any] = Field(default_factory=dict)


class UpdateWorkflowRunRequest(WorldModel):
    status: Optional[RunStatus] = None
    output: WritePayload = None
    error: Optional[StructuredError] = None
    execution_context: Optional[dict[str, Any]] = None


class CreateStepRequest(WorldModel):
    step_id: str
    step_name: str
    input: WritePayload = None


class UpdateStepRequest(WorldModel):
    status: Optional[StepStatus] = None
    output: WritePayload = None
    error: Optional[StructuredError] = None
    attempt: Optional[int] = None


class CreateEventRequest(WorldModel):
    event_type: str
    correlation_id: Optional[str] = None
    event_data: WritePayload = None


class CreateHookRequest(WorldModel):
    hook_id: str
    token: str
    metadata: WritePayload = None


# ----------------------------------------------------------------------
# Parameters and pages


class PaginationOptions(WorldModel):
    cursor: Optional[str] = None
    limit: Optional[int] = None
    sort_order: Optional[SortOrder] = None

    @field_validator("limit")
    @classmethod
    def _positive_limit(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValidationError(f"limit must be a positive integer, got {value}", field="limit")
        return value


class GetParams(WorldModel):
    resolve_data: Optional[ResolveData] = None


class ListParams(WorldModel):
    pagination: PaginationOptions = Field(default_factory=PaginationOptions)
    resolve_data: Optional[ResolveData] = None


class ListWorkflowRunsParams(ListParams):
    workflow_name: Optional[str] = None
    status: Optional[RunStatus] = None


class ListWorkflowRunStepsParams(ListParams):
    run_id: str


class ListEventsParams(ListParams):
    run_id: str


class ListEventsByCorrelationIdParams(ListParams):
    correlation_id: str


class ListHooksParams(ListParams):
    run_id: Optional[str] = None


T = TypeVar("T")


class Page(WorldModel, Generic[T]):
    """One page of a cursor-paginated listing."""

    data: list[T] = Field(default_factory=list)
    cursor: Optional[str] = None
    has_more: bool = False
