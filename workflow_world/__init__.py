"""workflow-world: pluggable persistence for durable workflows."""

from .backends import get_world
from .config import WorldConfig, load_config
from .contract import EventsStorage, HooksStorage, RunsStorage, StepsStorage, World
from .error_codec import StructuredError, decode_error, encode_error
from .errors import (
    ConflictError,
    NotFoundError,
    SerializationError,
    ValidationError,
    WorldAPIError,
    WorldError,
)
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
    PaginationOptions,
    Step,
    StepWithoutData,
    UpdateStepRequest,
    UpdateWorkflowRunRequest,
    WorkflowRun,
    WorkflowRunWithoutData,
)
from .resolution import RemoteRefBehavior, ResolveData
from .serialization import BinaryData, LegacyData

__version__ = "0.1.0"
__all__ = [
    "get_world",
    "load_config",
    "WorldConfig",
    "World",
    "RunsStorage",
    "StepsStorage",
    "EventsStorage",
    "HooksStorage",
    "WorldError",
    "NotFoundError",
    "ValidationError",
    "SerializationError",
    "ConflictError",
    "WorldAPIError",
    "StructuredError",
    "decode_error",
    "encode_error",
    "BinaryData",
    "LegacyData",
    "ResolveData",
    "RemoteRefBehavior",
    "WorkflowRun",
    "WorkflowRunWithoutData",
    "Step",
    "StepWithoutData",
    "Event",
    "EventWithoutData",
    "Hook",
    "HookWithoutData",
    "CreateWorkflowRunRequest",
    "UpdateWorkflowRunRequest",
    "CreateStepRequest",
    "UpdateStepRequest",
    "CreateEventRequest",
    "CreateHookRequest",
    "PaginationOptions",
    "GetParams",
    "ListWorkflowRunsParams",
    "ListWorkflowRunStepsParams",
    "ListEventsParams",
    "ListEventsByCorrelationIdParams",
    "ListHooksParams",
    "Page",
]
