"""World backed by the remote workflow HTTP API.

Every read sends ``remoteRefBehavior``: ``lazy`` when the caller asked for
``resolve_data="none"`` (the server may then replace bulky fields with
``inputRef``/``outputRef``-style markers, which are dropped here) and
``resolve`` otherwise. Errors arrive either as a JSON string or as an object,
optionally with an already resolved ``errorRef``; both are normalized by the
record models.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config import RemoteConfig
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
from ..error_codec import encode_error
from ..errors import ConflictError, NotFoundError, ValidationError, WorldAPIError
from ..models import (
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
    ListParams,
    ListWorkflowRunsParams,
    ListWorkflowRunStepsParams,
    Page,
    PayloadRecord,
    Step,
    UpdateStepRequest,
    UpdateWorkflowRunRequest,
    WorkflowRun,
    WorldModel,
)
from ..resolution import (
    DEFAULT_RESOLVE_DATA,
    ResolveData,
    coerce_resolve_data,
    project,
    remote_ref_behavior,
)
from .records import load_record

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(value, safe="")


def _request_body(request: WorldModel) -> dict[str, Any]:
    body = request.model_dump(mode="json", by_alias=True, exclude_none=True)
    error = getattr(request, "error", None)
    if error is not None:
        body["error"] = encode_error(error)
    return body


class RemoteClient:
    """Thin ``httpx`` wrapper translating HTTP failures into World errors."""

    def __init__(
        self,
        config: RemoteConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not config.base_url:
            raise ValueError("Remote backend requires a base_url")
        headers = dict(config.headers)
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        logger.debug(f"{method} {endpoint} params={params}")
        try:
            response = await self._client.request(method, endpoint, params=params, json=json)
        except httpx.HTTPError as exc:
            raise WorldAPIError(f"{method} {endpoint} failed: {exc}") from exc

        if response.is_success:
            return response.json()

        message = self._error_message(response)
        if response.status_code == 404:
            raise NotFoundError("Resource", message=message)
        if response.status_code == 409:
            raise ConflictError(message)
        if response.status_code in (400, 422):
            raise ValidationError(message)
        raise WorldAPIError(message, status_code=response.status_code)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        fallback = f"{response.request.method} {response.request.url.path} returned {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            return response.text or fallback
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return fallback

    async def close(self) -> None:
        await self._client.aclose()


class _RemoteNamespace:
    def __init__(
        self, client: RemoteClient, resolve_data: ResolveData | str = DEFAULT_RESOLVE_DATA
    ) -> None:
        self._client = client
        self._resolve_data = coerce_resolve_data(resolve_data)

    def _mode(self, params: Any) -> ResolveData:
        return coerce_resolve_data(getattr(params, "resolve_data", None), self._resolve_data)

    def _query(self, params: Any, **filters: Any) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if isinstance(params, ListParams):
            pagination = params.pagination
            if pagination.cursor:
                query["cursor"] = pagination.cursor
            if pagination.limit is not None:
                query["limit"] = str(pagination.limit)
            if pagination.sort_order:
                query["sortOrder"] = pagination.sort_order
        for key, value in filters.items():
            if value is not None:
                query[key] = value
        query["remoteRefBehavior"] = remote_ref_behavior(self._mode(params)).value
        return query

    async def _get_one(
        self,
        model: type[PayloadRecord],
        entity: str,
        endpoint: str,
        params: Any,
        ids: tuple[str, ...],
        message: Optional[str] = None,
    ) -> Any:
        try:
            body = await self._client.request("GET", endpoint, params=self._query(params))
        except NotFoundError as exc:
            raise NotFoundError(entity, *ids, message=message) from exc
        return project(load_record(model, body, entity.lower()), self._mode(params))

    async def _get_page(
        self, model: type[PayloadRecord], entity: str, endpoint: str, query: dict[str, Any], params: Any
    ) -> Page:
        body = await self._client.request("GET", endpoint, params=query)
        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise ValidationError(f"Malformed {entity} page from {endpoint}", field="data")
        mode = self._mode(params)
        return Page(
            data=[project(load_record(model, item, entity), mode) for item in body["data"]],
            cursor=body.get("cursor"),
            has_more=bool(body.get("hasMore", False)),
        )


class RemoteRunsStorage(_RemoteNamespace, RunsStorage):
    async def create(self, request: CreateWorkflowRunRequest) -> WorkflowRun:
        body = await self._client.request("POST", "/v2/runs/create", json=_request_body(request))
        run = load_record(WorkflowRun, body, "run")
        logger.info(f"Created run {run.run_id} for workflow {run.workflow_name}")
        return run

    async def get(self, run_id: str, params: Optional[GetParams] = None) -> RunResult:
        return await self._get_one(
            WorkflowRun, "Run", f"/v2/runs/{_segment(run_id)}", params, (run_id,)
        )

    async def update(self, run_id: str, request: UpdateWorkflowRunRequest) -> WorkflowRun:
        try:
            body = await self._client.request(
                "PUT", f"/v2/runs/{_segment(run_id)}", json=_request_body(request)
            )
        except NotFoundError as exc:
            raise NotFoundError("Run", run_id) from exc
        return load_record(WorkflowRun, body, "run")

    async def list(self, params: Optional[ListWorkflowRunsParams] = None) -> Page[RunResult]:
        params = params or ListWorkflowRunsParams()
        query = self._query(params, workflowName=params.workflow_name, status=params.status)
        return await self._get_page(WorkflowRun, "run", "/v2/runs", query, params)


class RemoteStepsStorage(_RemoteNamespace, StepsStorage):
    async def create(self, run_id: str, request: CreateStepRequest) -> Step:
        body = await self._client.request(
            "POST", f"/v2/runs/{_segment(run_id)}/steps", json=_request_body(request)
        )
        step = load_record(Step, body, "step")
        logger.info(f"Created step {step.step_id} ({step.step_name}) in run {run_id}")
        return step

    async def get(
        self, run_id: Optional[str], step_id: str, params: Optional[GetParams] = None
    ) -> StepResult:
        if run_id:
            endpoint = f"/v2/runs/{_segment(run_id)}/steps/{_segment(step_id)}"
            return await self._get_one(
                Step,
                "Step",
                endpoint,
                params,
                (run_id, step_id),
                message=f"Step {step_id} in run {run_id} not found",
            )
        return await self._get_one(
            Step, "Step", f"/v2/steps/{_segment(step_id)}", params, (step_id,)
        )

    async def update(self, run_id: str, step_id: str, request: UpdateStepRequest) -> Step:
        endpoint = f"/v2/runs/{_segment(run_id)}/steps/{_segment(step_id)}"
        try:
            body = await self._client.request("PUT", endpoint, json=_request_body(request))
        except NotFoundError as exc:
            raise NotFoundError(
                "Step", run_id, step_id, message=f"Step {step_id} in run {run_id} not found"
            ) from exc
        return load_record(Step, body, "step")

    async def list(self, params: ListWorkflowRunStepsParams) -> Page[StepResult]:
        endpoint = f"/v2/runs/{_segment(params.run_id)}/steps"
        return await self._get_page(Step, "step", endpoint, self._query(params), params)


class RemoteEventsStorage(_RemoteNamespace, EventsStorage):
    async def create(
        self, run_id: str, request: CreateEventRequest, params: Optional[GetParams] = None
    ) -> EventResult:
        body = await self._client.request(
            "POST",
            f"/v2/runs/{_segment(run_id)}/events",
            params=self._query(params),
            json=_request_body(request),
        )
        return project(load_record(Event, body, "event"), self._mode(params))

    async def list(self, params: ListEventsParams) -> Page[EventResult]:
        endpoint = f"/v2/runs/{_segment(params.run_id)}/events"
        return await self._get_page(Event, "event", endpoint, self._query(params), params)

    async def list_by_correlation_id(
        self, params: ListEventsByCorrelationIdParams
    ) -> Page[EventResult]:
        query = self._query(params, correlationId=params.correlation_id)
        return await self._get_page(Event, "event", "/v2/events", query, params)


class RemoteHooksStorage(_RemoteNamespace, HooksStorage):
    async def create(self, run_id: str, request: CreateHookRequest) -> Hook:
        body = await self._client.request(
            "POST", f"/v2/runs/{_segment(run_id)}/hooks", json=_request_body(request)
        )
        hook = load_record(Hook, body, "hook")
        logger.info(f"Created hook {hook.hook_id} for run {run_id}")
        return hook

    async def get(self, hook_id: str, params: Optional[GetParams] = None) -> HookResult:
        return await self._get_one(
            Hook, "Hook", f"/v2/hooks/{_segment(hook_id)}", params, (hook_id,)
        )

    async def get_by_token(self, token: str, params: Optional[GetParams] = None) -> HookResult:
        return await self._get_one(
            Hook,
            "Hook",
            f"/v2/hooks/by-token/{_segment(token)}",
            params,
            (),
            message="Hook with the given token not found",
        )

    async def list(self, params: Optional[ListHooksParams] = None) -> Page[HookResult]:
        params = params or ListHooksParams()
        query = self._query(params, runId=params.run_id)
        return await self._get_page(Hook, "hook", "/v2/hooks", query, params)

    async def dispose(self, hook_id: str) -> Hook:
        try:
            body = await self._client.request("DELETE", f"/v2/hooks/{_segment(hook_id)}")
        except NotFoundError as exc:
            raise NotFoundError("Hook", hook_id) from exc
        logger.info(f"Disposed hook {hook_id}")
        return load_record(Hook, body, "hook")


class RemoteWorld(World):
    """World talking to the remote API through one shared HTTP client."""

    def __init__(
        self,
        config: RemoteConfig,
        resolve_data: ResolveData | str = DEFAULT_RESOLVE_DATA,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client = RemoteClient(config, transport=transport)
        super().__init__(
            runs=RemoteRunsStorage(self.client, resolve_data),
            steps=RemoteStepsStorage(self.client, resolve_data),
            events=RemoteEventsStorage(self.client, resolve_data),
            hooks=RemoteHooksStorage(self.client, resolve_data),
        )

    async def close(self) -> None:
        await self.client.close()


__all__ = [
    "RemoteClient",
    "RemoteWorld",
    "RemoteRunsStorage",
    "RemoteStepsStorage",
    "RemoteEventsStorage",
    "RemoteHooksStorage",
]
