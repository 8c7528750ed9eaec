"""Remote backend tests against a mocked HTTP API."""

import json

import httpx
import pytest

from workflow_world.backends.remote import RemoteWorld
from workflow_world.config import RemoteConfig
from workflow_world.error_codec import StructuredError
from workflow_world.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    WorldAPIError,
)
from workflow_world.models import (
    CreateHookRequest,
    CreateStepRequest,
    GetParams,
    ListEventsByCorrelationIdParams,
    ListWorkflowRunsParams,
    ListWorkflowRunStepsParams,
    PaginationOptions,
    StepWithoutData,
    UpdateStepRequest,
)
from workflow_world.serialization import BinaryData, encode_bytes

CONFIG = RemoteConfig(base_url="https://world.test", token="secret")


def _step_body(**overrides):
    body = {
        "runId": "wrun_1",
        "stepId": "s1",
        "stepName": "fetch",
        "status": "completed",
        "input": encode_bytes(b"in"),
        "output": encode_bytes(b"out"),
        "attempt": 1,
        "specVersion": 2,
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-01-01T00:00:01Z",
    }
    body.update(overrides)
    return body


class Recorder:
    """Mock transport handler that records requests and replays canned responses."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": f"no route {key}"})
        status, body = self.routes[key]
        return httpx.Response(status, json=body)


def _world(routes, **kwargs):
    recorder = Recorder(routes)
    world = RemoteWorld(CONFIG, transport=httpx.MockTransport(recorder), **kwargs)
    return world, recorder


@pytest.mark.asyncio
async def test_get_step_sends_auth_and_resolve_query():
    world, recorder = _world({("GET", "/v2/runs/wrun_1/steps/s1"): (200, _step_body())})

    step = await world.steps.get("wrun_1", "s1", GetParams(resolve_data="all"))
    assert step.input == BinaryData(data=b"in")
    assert step.output == BinaryData(data=b"out")

    request = recorder.requests[0]
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.url.params["remoteRefBehavior"] == "resolve"
    await world.close()


@pytest.mark.asyncio
async def test_lazy_mode_discards_refs():
    body = _step_body(output=None, outputRef={"kind": "blob", "id": "b1"})
    del body["input"]
    body["inputRef"] = {"kind": "blob", "id": "b0"}
    world, recorder = _world({("GET", "/v2/steps/s1"): (200, body)})

    step = await world.steps.get(None, "s1", GetParams(resolve_data="none"))
    assert isinstance(step, StepWithoutData)
    assert step.input is None and step.output is None
    assert not hasattr(step, "input_ref")
    assert recorder.requests[0].url.params["remoteRefBehavior"] == "lazy"


@pytest.mark.asyncio
async def test_error_ref_takes_precedence():
    body = _step_body(
        status="failed",
        error=json.dumps({"message": "inline"}),
        errorRef={"message": "resolved", "code": "E42"},
    )
    world, _ = _world({("GET", "/v2/runs/wrun_1/steps/s1"): (200, body)})

    step = await world.steps.get("wrun_1", "s1")
    assert step.error == StructuredError(message="resolved", code="E42")


@pytest.mark.asyncio
async def test_not_found_maps_to_world_error():
    world, _ = _world({})
    with pytest.raises(NotFoundError) as exc_info:
        await world.steps.get("wrun_1", "missing")
    assert "wrun_1" in str(exc_info.value)
    assert "missing" in str(exc_info.value)

    with pytest.raises(NotFoundError):
        await world.hooks.get_by_token("nope")


@pytest.mark.asyncio
async def test_status_mapping():
    world, _ = _world(
        {
            ("POST", "/v2/runs/wrun_1/hooks"): (409, {"message": "token taken"}),
            ("POST", "/v2/runs/wrun_1/steps"): (400, {"message": "bad step"}),
            ("GET", "/v2/runs"): (503, {"message": "unavailable"}),
        }
    )
    with pytest.raises(ConflictError, match="token taken"):
        await world.hooks.create("wrun_1", CreateHookRequest(hook_id="h1", token="t"))
    with pytest.raises(ValidationError, match="bad step"):
        await world.steps.create("wrun_1", CreateStepRequest(step_id="s1", step_name="x"))
    with pytest.raises(WorldAPIError) as exc_info:
        await world.runs.list()
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_transport_failure_maps_to_api_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    world = RemoteWorld(CONFIG, transport=httpx.MockTransport(handler))
    with pytest.raises(WorldAPIError) as exc_info:
        await world.runs.get("wrun_1")
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_list_steps_passes_pagination_and_parses_page():
    page_body = {"data": [_step_body(stepId="s5"), _step_body(stepId="s4")], "cursor": "c1", "hasMore": True}
    world, recorder = _world({("GET", "/v2/runs/wrun_1/steps"): (200, page_body)})

    params = ListWorkflowRunStepsParams(
        run_id="wrun_1",
        pagination=PaginationOptions(limit=2, sort_order="desc", cursor="c0"),
        resolve_data="none",
    )
    page = await world.steps.list(params)
    assert [s.step_id for s in page.data] == ["s5", "s4"]
    assert page.cursor == "c1"
    assert page.has_more
    assert all(s.output is None for s in page.data)

    query = recorder.requests[0].url.params
    assert query["limit"] == "2"
    assert query["sortOrder"] == "desc"
    assert query["cursor"] == "c0"
    assert query["remoteRefBehavior"] == "lazy"


@pytest.mark.asyncio
async def test_list_filters_become_query_params():
    world, recorder = _world(
        {
            ("GET", "/v2/runs"): (200, {"data": [], "cursor": None, "hasMore": False}),
            ("GET", "/v2/events"): (200, {"data": [], "cursor": None, "hasMore": False}),
        }
    )
    await world.runs.list(ListWorkflowRunsParams(workflow_name="checkout", status="failed"))
    await world.events.list_by_correlation_id(ListEventsByCorrelationIdParams(correlation_id="c-1"))

    runs_query, events_query = (r.url.params for r in recorder.requests)
    assert runs_query["workflowName"] == "checkout"
    assert runs_query["status"] == "failed"
    assert events_query["correlationId"] == "c-1"


@pytest.mark.asyncio
async def test_update_step_encodes_error_and_payload():
    world, recorder = _world(
        {("PUT", "/v2/runs/wrun_1/steps/s1"): (200, _step_body(status="failed"))}
    )
    await world.steps.update(
        "wrun_1",
        "s1",
        UpdateStepRequest(status="failed", output=b"out", error=StructuredError(message="boom")),
    )

    sent = json.loads(recorder.requests[0].content)
    assert sent["status"] == "failed"
    assert sent["output"] == encode_bytes(b"out")
    assert json.loads(sent["error"]) == {"message": "boom"}
    assert "attempt" not in sent


@pytest.mark.asyncio
async def test_dispose_hook_uses_delete():
    hook = {"hookId": "h1", "runId": "wrun_1", "token": "t", "specVersion": 2}
    world, recorder = _world({("DELETE", "/v2/hooks/h1"): (200, hook)})

    disposed = await world.hooks.dispose("h1")
    assert disposed.hook_id == "h1"
    assert recorder.requests[0].method == "DELETE"


@pytest.mark.asyncio
async def test_invalid_limit_rejected_before_request():
    world, recorder = _world({("GET", "/v2/runs/wrun_1/steps"): (200, {"data": []})})
    with pytest.raises(ValidationError):
        await world.steps.list(
            ListWorkflowRunStepsParams(run_id="wrun_1", pagination=PaginationOptions(limit=0))
        )
    assert recorder.requests == []
