"""Storage contract implemented on top of a plain record store.

Local-style backends (filesystem, memory, SQL) only need to read, write and
scan JSON records by collection and key. The namespaces below turn that into
the full World contract, so every such backend projects, paginates and fails
the same way.

Keys:

- ``runs/{runId}``
- ``steps/{runId}-{stepId}``
- ``events/{runId}-{eventId}``
- ``hooks/{hookId}``
"""

from __future__ import annotations

import abc
import logging
import time
import uuid
from typing import Any, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ..contract import (
    EventResult,
    EventsStorage,
    HookResult,
    HooksStorage,
    RunResult,
    RunsStorage,
    StepResult,
    StepsStorage,
    World,
)
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import (
    TERMINAL_STATUSES,
    CreateEventRequest,
    CreateHookRequest,
    CreateStepRequest,
    CreateWorkflowRunRequest,
    Event,
    GetParams,
    Hook,
    ListEventsByCorrelationIdParams,
    ListEventsParams,
    ListHooksParams,
    ListWorkflowRunsParams,
    ListWorkflowRunStepsParams,
    Page,
    PayloadRecord,
    SortOrder,
    Step,
    UpdateStepRequest,
    UpdateWorkflowRunRequest,
    WorkflowRun,
    utcnow,
)
from ..pagination import DEFAULT_PAGE_LIMIT, paginate
from ..resolution import DEFAULT_RESOLVE_DATA, ResolveData, coerce_resolve_data, project
from ..serialization import SPEC_VERSION_CURRENT

logger = logging.getLogger(__name__)

RUNS = "runs"
STEPS = "steps"
EVENTS = "events"
HOOKS = "hooks"

COLLECTIONS = (RUNS, STEPS, EVENTS, HOOKS)

RecordT = TypeVar("RecordT", bound=PayloadRecord)


class RecordStore(metaclass=abc.ABCMeta):
    """Minimal persistence engine used by the record-backed namespaces."""

    @abc.abstractmethod
    async def read(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        """Return the record stored under ``key`` or ``None``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def insert(self, collection: str, key: str, record: dict[str, Any]) -> None:
        """Store a new record; raise ``ConflictError`` if ``key`` is taken."""
        raise NotImplementedError

    @abc.abstractmethod
    async def write(self, collection: str, key: str, record: dict[str, Any]) -> None:
        """Create or replace the record stored under ``key``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, collection: str, key: str) -> None:
        """Remove ``key`` if present."""
        raise NotImplementedError

    @abc.abstractmethod
    async def keys(self, collection: str, prefix: str = "") -> list[str]:
        """Return the keys of ``collection`` starting with ``prefix``."""
        raise NotImplementedError

    async def scan(self, collection: str, prefix: str = "") -> list[dict[str, Any]]:
        """Return every record whose key starts with ``prefix``."""
        records = []
        for key in await self.keys(collection, prefix):
            record = await self.read(collection, key)
            if record is not None:
                records.append(record)
        return records

    async def close(self) -> None:
        """Release engine resources (no-op by default)."""
        pass


def new_id(prefix: str) -> str:
    """Return a unique id whose leading part orders by creation time."""
    return f"{prefix}_{time.time_ns():016x}{uuid.uuid4().hex[:12]}"


def step_key(run_id: str, step_id: str) -> str:
    return f"{run_id}-{step_id}"


def event_key(run_id: str, event_id: str) -> str:
    return f"{run_id}-{event_id}"


def load_record(model: type[RecordT], record: dict[str, Any], entity: str) -> RecordT:
    """Validate a stored or wire record, reporting shape mismatches as ``ValidationError``."""
    try:
        return model.from_record(record)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {entity} record: {exc}", field=entity) from exc


def _ensure_writable(record: PayloadRecord, entity: str, record_id: str) -> None:
    if record.spec_version < SPEC_VERSION_CURRENT:
        raise ValidationError(
            f"{entity} {record_id} was written under specVersion {record.spec_version}; "
            "legacy payloads are read-only",
            field="specVersion",
        )


class _RecordNamespace:
    def __init__(
        self,
        store: RecordStore,
        resolve_data: ResolveData | str = DEFAULT_RESOLVE_DATA,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        self._store = store
        self._resolve_data = coerce_resolve_data(resolve_data)
        self._page_limit = page_limit

    def _mode(self, params: Any) -> ResolveData:
        return coerce_resolve_data(getattr(params, "resolve_data", None), self._resolve_data)

    def _page(
        self,
        records: list[RecordT],
        params: Any,
        id_attr: str,
        default_sort_order: SortOrder = "desc",
    ) -> Page:
        page = paginate(
            records,
            created_at=lambda record: record.created_at,
            record_id=lambda record: getattr(record, id_attr),
            options=getattr(params, "pagination", None),
            default_sort_order=default_sort_order,
            default_limit=self._page_limit,
        )
        mode = self._mode(params)
        page.data = [project(record, mode) for record in page.data]
        return page


class RecordRunsStorage(_RecordNamespace, RunsStorage):
    async def create(self, request: CreateWorkflowRunRequest) -> WorkflowRun:
        now = utcnow()
        run = WorkflowRun(
            run_id=new_id("wrun"),
            workflow_name=request.workflow_name,
            deployment_id=request.deployment_id,
            input=request.input,
            execution_context=request.execution_context,
            created_at=now,
            updated_at=now,
        )
        await self._store.insert(RUNS, run.run_id, run.to_record())
        logger.info(f"Created run {run.run_id} for workflow {run.workflow_name}")
        return run

    async def _load(self, run_id: str) -> WorkflowRun:
        record = await self._store.read(RUNS, run_id)
        if record is None:
            raise NotFoundError("Run", run_id)
        return load_record(WorkflowRun, record, "run")

    async def get(self, run_id: str, params: Optional[GetParams] = None) -> RunResult:
        return project(await self._load(run_id), self._mode(params))

    async def update(self, run_id: str, request: UpdateWorkflowRunRequest) -> WorkflowRun:
        run = await self._load(run_id)
        if request.output is not None:
            _ensure_writable(run, "Run", run_id)
        now = utcnow()
        changes: dict[str, Any] = {"updated_at": now}
        if request.status is not None:
            changes["status"] = request.status
            if request.status == "running" and run.started_at is None:
                changes["started_at"] = now
            if request.status in TERMINAL_STATUSES:
                changes["completed_at"] = now
        if request.output is not None:
            changes["output"] = request.output
        if request.error is not None:
            changes["error"] = request.error
        if request.execution_context is not None:
            changes["execution_context"] = request.execution_context
        run = run.model_copy(update=changes)
        await self._store.write(RUNS, run_id, run.to_record())
        return run

    async def list(self, params: Optional[ListWorkflowRunsParams] = None) -> Page[RunResult]:
        params = params or ListWorkflowRunsParams()
        runs = [load_record(WorkflowRun, r, "run") for r in await self._store.scan(RUNS)]
        if params.workflow_name is not None:
            runs = [run for run in runs if run.workflow_name == params.workflow_name]
        if params.status is not None:
            runs = [run for run in runs if run.status == params.status]
        return self._page(runs, params, "run_id")


class RecordStepsStorage(_RecordNamespace, StepsStorage):
    async def create(self, run_id: str, request: CreateStepRequest) -> Step:
        now = utcnow()
        step = Step(
            run_id=run_id,
            step_id=request.step_id,
            step_name=request.step_name,
            input=request.input,
            created_at=now,
            updated_at=now,
        )
        try:
            await self._store.insert(STEPS, step_key(run_id, request.step_id), step.to_record())
        except ConflictError as exc:
            raise ConflictError(
                f"Step {request.step_id} already exists in run {run_id}"
            ) from exc
        logger.info(f"Created step {step.step_id} ({step.step_name}) in run {run_id}")
        return step

    async def _find_run_id(self, step_id: str) -> str:
        suffix = f"-{step_id}"
        for key in await self._store.keys(STEPS):
            if not key.endswith(suffix):
                continue
            record = await self._store.read(STEPS, key)
            if record is not None and record.get("stepId") == step_id:
                logger.debug(f"Resolved step {step_id} to run {record.get('runId')}")
                return record["runId"]
        raise NotFoundError("Step", step_id)

    async def _load(self, run_id: str, step_id: str) -> Step:
        record = await self._store.read(STEPS, step_key(run_id, step_id))
        if record is None:
            raise NotFoundError(
                "Step", run_id, step_id, message=f"Step {step_id} in run {run_id} not found"
            )
        return load_record(Step, record, "step")

    async def get(
        self, run_id: Optional[str], step_id: str, params: Optional[GetParams] = None
    ) -> StepResult:
        if not run_id:
            run_id = await self._find_run_id(step_id)
        return project(await self._load(run_id, step_id), self._mode(params))

    async def update(self, run_id: str, step_id: str, request: UpdateStepRequest) -> Step:
        step = await self._load(run_id, step_id)
        if request.output is not None:
            _ensure_writable(step, "Step", f"{run_id}/{step_id}")
        now = utcnow()
        changes: dict[str, Any] = {"updated_at": now}
        if request.status is not None:
            changes["status"] = request.status
            if request.status == "running" and step.started_at is None:
                changes["started_at"] = now
            if request.status in TERMINAL_STATUSES:
                changes["completed_at"] = now
        if request.output is not None:
            changes["output"] = request.output
        if request.error is not None:
            changes["error"] = request.error
        if request.attempt is not None:
            changes["attempt"] = request.attempt
        step = step.model_copy(update=changes)
        await self._store.write(STEPS, step_key(run_id, step_id), step.to_record())
        return step

    async def list(self, params: ListWorkflowRunStepsParams) -> Page[StepResult]:
        records = await self._store.scan(STEPS, prefix=f"{params.run_id}-")
        steps = [load_record(Step, r, "step") for r in records]
        steps = [step for step in steps if step.run_id == params.run_id]
        return self._page(steps, params, "step_id")


class RecordEventsStorage(_RecordNamespace, EventsStorage):
    async def create(
        self, run_id: str, request: CreateEventRequest, params: Optional[GetParams] = None
    ) -> EventResult:
        event = Event(
            event_id=new_id("evnt"),
            run_id=run_id,
            event_type=request.event_type,
            correlation_id=request.correlation_id,
            event_data=request.event_data,
            created_at=utcnow(),
        )
        await self._store.insert(EVENTS, event_key(run_id, event.event_id), event.to_record())
        logger.debug(f"Appended {event.event_type} event {event.event_id} to run {run_id}")
        return project(event, self._mode(params))

    async def list(self, params: ListEventsParams) -> Page[EventResult]:
        records = await self._store.scan(EVENTS, prefix=f"{params.run_id}-")
        events = [load_record(Event, r, "event") for r in records]
        events = [event for event in events if event.run_id == params.run_id]
        return self._page(events, params, "event_id", default_sort_order="asc")

    async def list_by_correlation_id(
        self, params: ListEventsByCorrelationIdParams
    ) -> Page[EventResult]:
        events = [load_record(Event, r, "event") for r in await self._store.scan(EVENTS)]
        events = [event for event in events if event.correlation_id == params.correlation_id]
        return self._page(events, params, "event_id", default_sort_order="asc")


class RecordHooksStorage(_RecordNamespace, HooksStorage):
    async def create(self, run_id: str, request: CreateHookRequest) -> Hook:
        for existing in await self._store.scan(HOOKS):
            if existing.get("token") == request.token:
                raise ConflictError(f"Hook token is already registered by {existing.get('hookId')}")
        hook = Hook(
            hook_id=request.hook_id,
            run_id=run_id,
            token=request.token,
            metadata=request.metadata,
            created_at=utcnow(),
        )
        try:
            await self._store.insert(HOOKS, hook.hook_id, hook.to_record())
        except ConflictError as exc:
            raise ConflictError(f"Hook {hook.hook_id} already exists") from exc
        logger.info(f"Created hook {hook.hook_id} for run {run_id}")
        return hook

    async def _load(self, hook_id: str) -> Hook:
        record = await self._store.read(HOOKS, hook_id)
        if record is None:
            raise NotFoundError("Hook", hook_id)
        return load_record(Hook, record, "hook")

    async def get(self, hook_id: str, params: Optional[GetParams] = None) -> HookResult:
        return project(await self._load(hook_id), self._mode(params))

    async def get_by_token(self, token: str, params: Optional[GetParams] = None) -> HookResult:
        for record in await self._store.scan(HOOKS):
            if record.get("token") == token:
                return project(load_record(Hook, record, "hook"), self._mode(params))
        raise NotFoundError("Hook", message="Hook with the given token not found")

    async def list(self, params: Optional[ListHooksParams] = None) -> Page[HookResult]:
        params = params or ListHooksParams()
        hooks = [load_record(Hook, r, "hook") for r in await self._store.scan(HOOKS)]
        if params.run_id is not None:
            hooks = [hook for hook in hooks if hook.run_id == params.run_id]
        return self._page(hooks, params, "hook_id")

    async def dispose(self, hook_id: str) -> Hook:
        hook = await self._load(hook_id)
        await self._store.delete(HOOKS, hook_id)
        logger.info(f"Disposed hook {hook_id}")
        return hook


class RecordWorld(World):
    """A World whose namespaces all share one :class:`RecordStore`."""

    def __init__(
        self,
        store: RecordStore,
        resolve_data: ResolveData | str = DEFAULT_RESOLVE_DATA,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        self.store = store
        super().__init__(
            runs=RecordRunsStorage(store, resolve_data, page_limit),
            steps=RecordStepsStorage(store, resolve_data, page_limit),
            events=RecordEventsStorage(store, resolve_data, page_limit),
            hooks=RecordHooksStorage(store, resolve_data, page_limit),
        )

    async def close(self) -> None:
        await self.store.close()


__all__ = [
    "COLLECTIONS",
    "RecordStore",
    "RecordWorld",
    "RecordRunsStorage",
    "RecordStepsStorage",
    "RecordEventsStorage",
    "RecordHooksStorage",
    "load_record",
    "new_id",
    "step_key",
    "event_key",
]
