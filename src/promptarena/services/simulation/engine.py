"""Dual-variant conversation replay streamed as Server-Sent Events.

Each variant walks an explicit state machine::

    INIT -> (RESOLVE_VARS -> SEND -> AWAIT_RESPONSE -> APPEND | APPEND_ERROR)* -> COMPLETE

and pushes its events into a shared queue. ``stream_simulation`` emits a
``start`` event, relays queued events in arrival order, then ``done`` once
both variants have finished. A failed LLM call only affects its own turn.
"""

import asyncio
import logging
import re
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from promptarena.models.enums import PromptType, ReasoningEffort, ServiceTier, Verbosity
from promptarena.models.simulation import SimulationEvent
from promptarena.services.llm_client import ChatClient

logger = logging.getLogger(__name__)

ERROR_SENTINEL = "[Error: Failed to get AI response]"
STREAM_FAILURE_MESSAGE = "Simulation failed. Please check your API key and try again."

_PLACEHOLDER = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")

_FINISHED = object()


class VariantState(StrEnum):
    INIT = "INIT"
    RESOLVE_VARS = "RESOLVE_VARS"
    SEND = "SEND"
    AWAIT_RESPONSE = "AWAIT_RESPONSE"
    APPEND = "APPEND"
    APPEND_ERROR = "APPEND_ERROR"
    COMPLETE = "COMPLETE"


@dataclass(frozen=True)
class ModelSettings:
    model: str
    reasoning_effort: str | None = None
    verbosity: str | None = None
    service_tier: str | None = None

    def request_options(self) -> dict[str, Any]:
        """Extra completion parameters; only the gpt-5 family accepts them."""
        if not self.model.startswith("gpt-5"):
            return {}
        options = {
            "reasoning_effort": self.reasoning_effort,
            "verbosity": self.verbosity,
            "service_tier": self.service_tier,
        }
        return {k: str(v) for k, v in options.items() if v is not None}

    def display_name(self) -> str:
        extras = []
        if self.reasoning_effort and self.reasoning_effort != ReasoningEffort.MEDIUM:
            extras.append(f"reasoning: {self.reasoning_effort}")
        if self.verbosity and self.verbosity != Verbosity.MEDIUM:
            extras.append(f"verbosity: {self.verbosity}")
        if self.service_tier and self.service_tier != ServiceTier.DEFAULT:
            extras.append(f"priority: {self.service_tier}")
        return f"{self.model} ({', '.join(extras)})" if extras else self.model


@dataclass(frozen=True)
class SimulationPlan:
    """Everything a run needs, loaded before the stream opens."""

    scenario_name: str
    user_turns: list[str]
    model: ModelSettings
    variables: dict[str, str] = field(default_factory=dict)


def resolve_variables(text: str, variables: dict[str, str]) -> str:
    """Replace each ``{{key}}`` with its value; unknown keys stay as written."""
    return _PLACEHOLDER.sub(lambda m: variables.get(m.group(1), m.group(0)), text)


def conversation_title(prompt_type: PromptType, model: ModelSettings) -> str:
    label = "Current" if prompt_type == PromptType.CURRENT else "Edited"
    return f"Simulation · {label} Prompt · {model.display_name()}"


Emit = Callable[[SimulationEvent], Awaitable[None]]


class VariantRun:
    """One prompt variant replayed turn by turn against the chat client."""

    def __init__(
        self,
        prompt_type: PromptType,
        system_prompt: str,
        plan: SimulationPlan,
        client: ChatClient,
        emit: Emit,
    ):
        self.prompt_type = prompt_type
        self.system_prompt = system_prompt
        self.plan = plan
        self.client = client
        self.emit = emit
        self.state = VariantState.INIT
        self.messages: list[dict[str, str]] = []

    async def _emit(self, event_type: str, data: Any) -> None:
        await self.emit(SimulationEvent(type=event_type, prompt_type=self.prompt_type, data=data))

    async def run(self) -> list[dict[str, str]]:
        self.state = VariantState.INIT
        self.messages = [
            {"role": "system", "content": resolve_variables(self.system_prompt, self.plan.variables)}
        ]

        for index, text in enumerate(self.plan.user_turns):
            self.state = VariantState.RESOLVE_VARS
            user_message = {"role": "user", "content": resolve_variables(text, self.plan.variables)}
            self.messages.append(user_message)
            await self._emit("message", user_message)

            self.state = VariantState.SEND
            request = list(self.messages)
            options = self.plan.model.request_options()
            try:
                self.state = VariantState.AWAIT_RESPONSE
                reply = await self.client.chat_completion(self.plan.model.model, request, options)
            except Exception as exc:
                logger.error(
                    "LLM call failed for %s variant, turn %d: %s",
                    self.prompt_type,
                    index + 1,
                    exc,
                )
                self.state = VariantState.APPEND_ERROR
                assistant_message = {"role": "assistant", "content": ERROR_SENTINEL}
            else:
                self.state = VariantState.APPEND
                assistant_message = {"role": "assistant", "content": reply}
            self.messages.append(assistant_message)
            await self._emit("message", assistant_message)

        self.state = VariantState.COMPLETE
        await self._emit(
            "complete",
            {
                "title": conversation_title(self.prompt_type, self.plan.model),
                "messages": self.messages[1:],
            },
        )
        return self.messages


async def stream_simulation(
    plan: SimulationPlan,
    old_prompt: str,
    new_prompt: str,
    client: ChatClient,
) -> AsyncIterator[str]:
    """Yield SSE frames for both variants multiplexed on one stream."""
    queue: asyncio.Queue = asyncio.Queue()

    async def produce(prompt_type: PromptType, prompt: str) -> None:
        try:
            await VariantRun(prompt_type, prompt, plan, client, queue.put).run()
        finally:
            await queue.put(_FINISHED)

    yield SimulationEvent(type="start", scenario_name=plan.scenario_name, total_turns=len(plan.user_turns)).to_sse()

    producers = [
        asyncio.create_task(produce(PromptType.CURRENT, old_prompt)),
        asyncio.create_task(produce(PromptType.EDITED, new_prompt)),
    ]
    try:
        remaining = len(producers)
        while remaining:
            item = await queue.get()
            if item is _FINISHED:
                remaining -= 1
                continue
            yield item.to_sse()

        # Surface a crash in either producer
        for task in producers:
            task.result()
        yield SimulationEvent(type="done").to_sse()
    except Exception:
        logger.exception("Simulation stream failed for scenario %s", plan.scenario_name)
        yield SimulationEvent(type="error", error=STREAM_FAILURE_MESSAGE).to_sse()
    finally:
        # Client went away or we failed: stop whatever is still running
        for task in producers:
            if not task.done():
                task.cancel()
        await asyncio.gather(*producers, return_exceptions=True)
