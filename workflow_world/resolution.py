"""Per-request policy for bulky payload fields.

Callers choose ``ResolveData.NONE`` to omit ``input``/``output``,
``event_data`` and ``metadata`` from responses, or ``ResolveData.ALL`` to get
them fully resolved. Backends that can substitute deferred references for
bulky fields (the remote API) receive the matching :class:`RemoteRefBehavior`.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional, TypeVar, Union

if TYPE_CHECKING:
    from .models import PayloadRecord

DEFAULT_RESOLVE_DATA = "all"


class ResolveData(str, Enum):
    NONE = "none"
    ALL = "all"


class RemoteRefBehavior(str, Enum):
    LAZY = "lazy"
    RESOLVE = "resolve"


RecordT = TypeVar("RecordT", bound="PayloadRecord")


def coerce_resolve_data(
    value: Union[ResolveData, str, None], default: Union[ResolveData, str] = DEFAULT_RESOLVE_DATA
) -> ResolveData:
    """Return the effective mode, falling back to the injected default."""
    return ResolveData(value if value is not None else default)


def remote_ref_behavior(resolve_data: Union[ResolveData, str]) -> RemoteRefBehavior:
    if ResolveData(resolve_data) is ResolveData.NONE:
        return RemoteRefBehavior.LAZY
    return RemoteRefBehavior.RESOLVE


def project(record: RecordT, resolve_data: Optional[Union[ResolveData, str]]) -> RecordT:
    """Apply the resolution mode to a fully decoded record.

    ``none`` returns the record's WithoutData variant with every bulky field
    absent; ``all`` returns the record unchanged. The stored record is never
    modified.
    """
    if ResolveData(resolve_data or DEFAULT_RESOLVE_DATA) is ResolveData.NONE:
        return record.without_data()
    return record


def project_run(run: RecordT, resolve_data: Optional[Union[ResolveData, str]]) -> RecordT:
    return project(run, resolve_data)


def project_step(step: RecordT, resolve_data: Optional[Union[ResolveData, str]]) -> RecordT:
    return project(step, resolve_data)


def project_event(event: RecordT, resolve_data: Optional[Union[ResolveData, str]]) -> RecordT:
    return project(event, resolve_data)


def project_hook(hook: RecordT, resolve_data: Optional[Union[ResolveData, str]]) -> RecordT:
    return project(hook, resolve_data)


__all__ = [
    "DEFAULT_RESOLVE_DATA",
    "ResolveData",
    "RemoteRefBehavior",
    "coerce_resolve_data",
    "remote_ref_behavior",
    "project",
    "project_run",
    "project_step",
    "project_event",
    "project_hook",
]
