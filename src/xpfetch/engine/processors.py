"""Run component processors over the batched query results.

Processors run concurrently and fail independently: one processor raising
never stops the others, it only marks its own component with an error.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from xpfetch.core.exceptions import ComponentProcessingError
from xpfetch.core.types import ComponentDescriptor, FragmentContent, PageComponent

logger = logging.getLogger(__name__)


async def no_props_processor(data: Any, context: Any = None) -> Any:
    """Default processor: pass the data through, or an empty dict when there is none."""
    return data or {}


@dataclass(frozen=True)
class ProcessorOutcome:
    """Settled result of one processor: exactly one of ``value`` / ``error`` is meaningful."""

    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class StitchedResults:
    data: Any
    common: Any
    # id(component) -> outcome, for the components of the descriptors that follow data/common
    component_outcomes: Mapping[int, ProcessorOutcome]


async def _run_one(descriptor: ComponentDescriptor, data: Any, context: Any) -> Any:
    processor = descriptor.definition.processor if descriptor.definition else None
    result = (processor or no_props_processor)(data, context)
    if inspect.isawaitable(result):
        result = await result
    return result


def _reason(error: BaseException) -> str:
    if isinstance(error, ComponentProcessingError):
        return error.reason
    message = str(error)
    return message if message else type(error).__name__


async def apply_processors(
    descriptors: Sequence[ComponentDescriptor],
    contents: Sequence[Any],
    context: Any = None,
) -> list[ProcessorOutcome]:
    """Run each descriptor's processor on its result slot and settle them all.

    Args:
        descriptors: Descriptors in combination order
        contents: Results parallel to ``descriptors`` (None where a descriptor
            contributed no query)
        context: Request context handed to every processor

    Returns:
        One outcome per descriptor, in the same order.

    """
    tasks = [
        _run_one(descriptor, contents[index] if index < len(contents) else None, context)
        for index, descriptor in enumerate(descriptors)
    ]
    settled = await asyncio.gather(*tasks, return_exceptions=True)

    outcomes: list[ProcessorOutcome] = []
    for descriptor, result in zip(descriptors, settled, strict=True):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            path = descriptor.component.path if descriptor.component else None
            logger.warning("Processor failed for %s: %s", path or "content query", result)
            outcomes.append(ProcessorOutcome(error=_reason(result)))
        else:
            outcomes.append(ProcessorOutcome(value=result))
    return outcomes


def stitch_results(
    descriptors: Sequence[ComponentDescriptor],
    outcomes: Sequence[ProcessorOutcome],
    has_content_query: bool,
    has_common_query: bool,
) -> StitchedResults:
    """Split outcomes into content data, common data and per-component outcomes.

    The content-type outcome comes first, then the common one, then one per
    component descriptor. A failed content or common processor yields None.
    """
    start = 0
    data = common = None
    if has_content_query:
        data = _value_or_log(outcomes[start], "content type")
        start += 1
    if has_common_query:
        common = _value_or_log(outcomes[start], "common query")
        start += 1

    component_outcomes: dict[int, ProcessorOutcome] = {}
    for descriptor, outcome in zip(descriptors[start:], outcomes[start:], strict=True):
        if descriptor.component is not None:
            component_outcomes[id(descriptor.component)] = outcome
    return StitchedResults(data=data, common=common, component_outcomes=component_outcomes)


def _value_or_log(outcome: ProcessorOutcome, label: str) -> Any:
    if outcome.ok:
        return outcome.value
    logger.error("Processor for %s failed: %s", label, outcome.error)
    return None


def annotate_components(
    components: Sequence[PageComponent],
    outcomes: Mapping[int, ProcessorOutcome],
) -> list[PageComponent]:
    """Return copies of ``components`` carrying their processor outcome as ``data`` or ``error``.

    Components are matched by identity with the descriptors' components;
    fragment contents are annotated recursively. The input list is left untouched.
    """
    annotated: list[PageComponent] = []
    for component in components:
        updates: dict[str, Any] = {}
        outcome = outcomes.get(id(component))
        if outcome is not None:
            updates.update({"data": outcome.value, "error": None} if outcome.ok else {"data": None, "error": outcome.error})

        nested = component.nested_components
        fragment = component.fragment
        if nested and fragment is not None:
            updates["fragment"] = fragment.model_copy(
                update={"fragment": FragmentContent(components=annotate_components(nested, outcomes))}
            )

        annotated.append(component.model_copy(update=updates) if updates else component)
    return annotated
