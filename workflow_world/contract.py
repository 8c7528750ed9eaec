"""Storage contract shared by every World backend.

A World exposes four namespaces (``runs``, ``steps``, ``events``, ``hooks``).
Each backend implements them with identical parameter and return shapes so
that the execution engine never needs to know which backend it talks to.
"""

from __future__ import annotations

import abc
from typing import Optional, Union

from .models import (
    CreateEventRequest,
    CreateHookRequest,
    CreateStepRequest,
    CreateWorkflowRunRequest,
    Event,
    EventWithoutData,
    GetParams,
    Hook,
    HookWithoutData,
    ListEventsByCorrelationIdParams,
    ListEventsParams,
    ListHooksParams,
    ListWorkflowRunsParams,
    ListWorkflowRunStepsParams,
    Page,
    Step,
    StepWithoutData,
    UpdateStepRequest,
    UpdateWorkflowRunRequest,
    WorkflowRun,
    WorkflowRunWithoutData,
)

RunResult = Union[WorkflowRun, WorkflowRunWithoutData]
StepResult = Union[Step, StepWithoutData]
EventResult = Union[Event, EventWithoutData]
HookResult = Union[Hook, HookWithoutData]


class RunsStorage(metaclass=abc.ABCMeta):
    """Workflow run records."""

    @abc.abstractmethod
    async def create(self, request: CreateWorkflowRunRequest) -> WorkflowRun:
        """Persist a new run and return it with its generated id."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, run_id: str, params: Optional[GetParams] = None) -> RunResult:
        """Return a run or raise ``NotFoundError``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def update(self, run_id: str, request: UpdateWorkflowRunRequest) -> WorkflowRun:
        """Apply ``request`` to an existing run."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list(self, params: Optional[ListWorkflowRunsParams] = None) -> Page[RunResult]:
        """Return one page of runs, newest first by default."""
        raise NotImplementedError


class StepsStorage(metaclass=abc.ABCMeta):
    """Step records keyed by ``(run_id, step_id)``."""

    @abc.abstractmethod
    async def create(self, run_id: str, request: CreateStepRequest) -> Step:
        """Persist a new step; the composite key must not exist yet."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get(
        self, run_id: Optional[str], step_id: str, params: Optional[GetParams] = None
    ) -> StepResult:
        """Return a step or raise ``NotFoundError``.

        When ``run_id`` is ``None`` the owning run is located from ``step_id``
        alone.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def update(self, run_id: str, step_id: str, request: UpdateStepRequest) -> Step:
        """Apply ``request`` to an existing step."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list(self, params: ListWorkflowRunStepsParams) -> Page[StepResult]:
        """Return one page of the steps of ``params.run_id``."""
        raise NotImplementedError


class EventsStorage(metaclass=abc.ABCMeta):
    """Append-only event records."""

    @abc.abstractmethod
    async def create(
        self, run_id: str, request: CreateEventRequest, params: Optional[GetParams] = None
    ) -> EventResult:
        """Append an event to ``run_id``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list(self, params: ListEventsParams) -> Page[EventResult]:
        """Return one page of the events of ``params.run_id``, oldest first by default."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list_by_correlation_id(
        self, params: ListEventsByCorrelationIdParams
    ) -> Page[EventResult]:
        """Return one page of the events sharing ``params.correlation_id`` across runs."""
        raise NotImplementedError


class HooksStorage(metaclass=abc.ABCMeta):
    """Hook records addressable by id or by token."""

    @abc.abstractmethod
    async def create(self, run_id: str, request: CreateHookRequest) -> Hook:
        """Register a hook for ``run_id``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, hook_id: str, params: Optional[GetParams] = None) -> HookResult:
        """Return a hook or raise ``NotFoundError``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_by_token(self, token: str, params: Optional[GetParams] = None) -> HookResult:
        """Return the hook registered under ``token`` or raise ``NotFoundError``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list(self, params: Optional[ListHooksParams] = None) -> Page[HookResult]:
        """Return one page of hooks, optionally restricted to one run."""
        raise NotImplementedError

    @abc.abstractmethod
    async def dispose(self, hook_id: str) -> Hook:
        """Remove a hook and return its last stored state."""
        raise NotImplementedError


class World:
    """A storage backend: the four namespaces plus resource cleanup."""

    def __init__(
        self,
        runs: RunsStorage,
        steps: StepsStorage,
        events: EventsStorage,
        hooks: HooksStorage,
    ) -> None:
        self.runs = runs
        self.steps = steps
        self.events = events
        self.hooks = hooks

    async def close(self) -> None:
        """Release backend resources (no-op by default)."""
        pass

    async def __aenter__(self) -> "World":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


__all__ = [
    "RunResult",
    "StepResult",
    "EventResult",
    "HookResult",
    "RunsStorage",
    "StepsStorage",
    "EventsStorage",
    "HooksStorage",
    "World",
]
