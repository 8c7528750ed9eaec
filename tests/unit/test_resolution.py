"""Resolution policy tests."""

from workflow_world.models import (
    Event,
    EventWithoutData,
    Hook,
    HookWithoutData,
    Step,
    StepWithoutData,
    WorkflowRun,
    WorkflowRunWithoutData,
)
from workflow_world.resolution import (
    RemoteRefBehavior,
    ResolveData,
    coerce_resolve_data,
    project,
    project_event,
    project_hook,
    project_run,
    project_step,
    remote_ref_behavior,
)


def test_remote_ref_behavior_mapping():
    assert remote_ref_behavior(ResolveData.NONE) is RemoteRefBehavior.LAZY
    assert remote_ref_behavior("all") is RemoteRefBehavior.RESOLVE


def test_coerce_resolve_data_uses_default():
    assert coerce_resolve_data(None) is ResolveData.ALL
    assert coerce_resolve_data(None, "none") is ResolveData.NONE
    assert coerce_resolve_data("all", "none") is ResolveData.ALL


def test_none_projection_drops_bulky_fields():
    run = WorkflowRun(run_id="r1", workflow_name="wf", input=b"in", output=b"out")
    projected = project_run(run, "none")
    assert isinstance(projected, WorkflowRunWithoutData)
    assert isinstance(projected, WorkflowRun)
    assert projected.input is None
    assert projected.output is None
    assert projected.run_id == "r1"
    assert projected.created_at == run.created_at
    # the source record is untouched
    assert run.input is not None

    step = Step(run_id="r1", step_id="s1", step_name="a", input=b"in", output=b"out")
    projected_step = project_step(step, ResolveData.NONE)
    assert isinstance(projected_step, StepWithoutData)
    assert projected_step.input is None and projected_step.output is None

    event = Event(event_id="e1", run_id="r1", event_type="step_started", event_data=b"x")
    projected_event = project_event(event, "none")
    assert isinstance(projected_event, EventWithoutData)
    assert projected_event.event_data is None

    hook = Hook(hook_id="h1", run_id="r1", token="t", metadata=b"m")
    projected_hook = project_hook(hook, "none")
    assert isinstance(projected_hook, HookWithoutData)
    assert projected_hook.metadata is None


def test_all_projection_returns_record_unchanged():
    step = Step(run_id="r1", step_id="s1", step_name="a", input=b"in")
    assert project(step, "all") is step
    assert project(step, None) is step
    assert not isinstance(project(step, "all"), StepWithoutData)


def test_every_entity_projects_to_its_own_lean_type():
    pairs = [
        (WorkflowRun(run_id="r1", workflow_name="wf"), WorkflowRunWithoutData),
        (Step(run_id="r1", step_id="s1", step_name="a"), StepWithoutData),
        (Event(event_id="e1", run_id="r1", event_type="step_started"), EventWithoutData),
        (Hook(hook_id="h1", run_id="r1", token="t"), HookWithoutData),
    ]
    for record, lean in pairs:
        assert type(record.without_data()) is lean
