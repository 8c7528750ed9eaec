"""Example recording a workflow run, its steps, events and a hook in a World."""

import asyncio

from workflow_world import (
    CreateEventRequest,
    CreateHookRequest,
    CreateStepRequest,
    CreateWorkflowRunRequest,
    GetParams,
    ListWorkflowRunStepsParams,
    PaginationOptions,
    UpdateStepRequest,
    UpdateWorkflowRunRequest,
    get_world,
)


async def main():
    """Persist one run end to end using the configured backend."""
    # Backend comes from world.yaml or WORKFLOW_TARGET_WORLD (defaults to local files)
    async with get_world() as world:
        run = await world.runs.create(
            CreateWorkflowRunRequest(workflow_name="onboard-customer", input=b"cust-123")
        )
        await world.runs.update(run.run_id, UpdateWorkflowRunRequest(status="running"))

        for index, name in enumerate(["validate-input", "create-account", "send-notification"]):
            step_id = f"step_{index}"
            await world.steps.create(run.run_id, CreateStepRequest(step_id=step_id, step_name=name))
            await world.steps.update(
                run.run_id,
                step_id,
                UpdateStepRequest(status="completed", output=f"{name}: ok".encode(), attempt=1),
            )
            await world.events.create(
                run.run_id,
                CreateEventRequest(event_type="step_completed", correlation_id=step_id),
            )

        hook = await world.hooks.create(
            run.run_id, CreateHookRequest(hook_id=f"hook_{run.run_id}", token="approve-123")
        )
        await world.runs.update(run.run_id, UpdateWorkflowRunRequest(status="completed"))

        print(f"✅ Run {run.run_id} recorded")
        params = ListWorkflowRunStepsParams(
            run_id=run.run_id,
            pagination=PaginationOptions(limit=2),
            resolve_data="none",
        )
        page = await world.steps.list(params)
        print(f"📋 Latest steps: {[s.step_name for s in page.data]} (more: {page.has_more})")

        resumed = await world.hooks.get_by_token("approve-123", GetParams(resolve_data="none"))
        print(f"🔗 Hook {resumed.hook_id} resumes run {resumed.run_id}")
        await world.hooks.dispose(hook.hook_id)


if __name__ == "__main__":
    asyncio.run(main())
