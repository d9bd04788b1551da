"""Simulation engine and /api/simulate tests.

Covers:
- SSE framing: start first, done last, one JSON object per frame
- a failed LLM call only marks its own turn; later turns still run
- variable substitution in system prompt and user turns
- gpt-5 model options and conversation titles
- request-time failures (missing scenario, no key, no secret) before streaming
"""

import json

import pytest

from promptarena.config import settings
from promptarena.models.enums import PromptType
from promptarena.services.simulation.engine import (
    ERROR_SENTINEL,
    STREAM_FAILURE_MESSAGE,
    ModelSettings,
    SimulationPlan,
    conversation_title,
    resolve_variables,
    stream_simulation,
)

from conftest import FakeChatClient


def _events(frames) -> list[dict]:
    events = []
    for frame in frames:
        assert frame.startswith("data: ") and frame.endswith("\n\n")
        events.append(json.loads(frame[len("data: "):]))
    return events


def _parse_body(text: str) -> list[dict]:
    return [json.loads(chunk[len("data: "):]) for chunk in text.split("\n\n") if chunk.strip()]


def _variant(events, prompt_type) -> list[dict]:
    return [e for e in events if e.get("promptType") == prompt_type]


async def _run(plan, old_prompt, new_prompt, client) -> list[dict]:
    return _events([frame async for frame in stream_simulation(plan, old_prompt, new_prompt, client)])


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stream_starts_and_finishes():
    plan = SimulationPlan(scenario_name="Demo", user_turns=["one", "two"], model=ModelSettings("gpt-4"))
    events = await _run(plan, "OLD", "NEW", FakeChatClient())

    assert events[0] == {"type": "start", "scenarioName": "Demo", "totalTurns": 2}
    assert events[-1] == {"type": "done"}

    for prompt_type in ("current", "edited"):
        variant = _variant(events, prompt_type)
        messages = [e["data"] for e in variant if e["type"] == "message"]
        assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
        assert messages[0]["content"] == "one"
        assert messages[1]["content"] == "reply to: one"
        complete = variant[-1]
        assert complete["type"] == "complete"
        assert complete["data"]["messages"] == messages


@pytest.mark.asyncio
async def test_failed_turn_is_isolated():
    def fail_second_turn_of_current(messages):
        return messages[0]["content"] == "OLD" and messages[-1]["content"] == "turn two"

    client = FakeChatClient(fail_when=fail_second_turn_of_current)
    plan = SimulationPlan(
        scenario_name="Three turns",
        user_turns=["turn one", "turn two", "turn three"],
        model=ModelSettings("gpt-4"),
    )
    events = await _run(plan, "OLD", "NEW", client)

    assert events[-1] == {"type": "done"}
    current = [e["data"]["content"] for e in _variant(events, "current") if e["type"] == "message"]
    assert current == [
        "turn one",
        "reply to: turn one",
        "turn two",
        ERROR_SENTINEL,
        "turn three",
        "reply to: turn three",
    ]
    edited = [e["data"]["content"] for e in _variant(events, "edited") if e["type"] == "message"]
    assert ERROR_SENTINEL not in edited
    assert len(edited) == 6

    # The third turn was sent with the sentinel in its history
    third_call = next(
        c for c in client.calls if c["messages"][0]["content"] == "OLD" and c["messages"][-1]["content"] == "turn three"
    )
    assert {"role": "assistant", "content": ERROR_SENTINEL} in third_call["messages"]


@pytest.mark.asyncio
async def test_variables_resolved_everywhere():
    client = FakeChatClient()
    plan = SimulationPlan(
        scenario_name="Vars",
        user_turns=["I'm {{customer_name}} from {{city}}"],
        model=ModelSettings("gpt-4"),
        variables={"customer_name": "Alex", "store": "Cafe"},
    )
    events = await _run(plan, "You work at {{store}}", "You are {{store}} support", client)

    systems = sorted(c["messages"][0]["content"] for c in client.calls)
    assert systems == ["You are Cafe support", "You work at Cafe"]
    user_messages = [e["data"]["content"] for e in events if e["type"] == "message" and e["data"]["role"] == "user"]
    assert user_messages == ["I'm Alex from {{city}}"] * 2


@pytest.mark.asyncio
async def test_producer_crash_reports_error_event():
    # A non-string turn blows up outside the per-turn error handling
    plan = SimulationPlan(scenario_name="Broken", user_turns=["fine", None], model=ModelSettings("gpt-4"))
    events = await _run(plan, "OLD", "NEW", FakeChatClient())

    assert events[0]["type"] == "start"
    assert events[-1] == {"type": "error", "error": STREAM_FAILURE_MESSAGE}
    assert {"type": "done"} not in events


def test_resolve_variables_leaves_unknown_keys():
    assert resolve_variables("Hi {{a}} and {{b}}", {"a": "1"}) == "Hi 1 and {{b}}"
    assert resolve_variables("{{ a }}", {"a": "1"}) == "{{ a }}"


def test_model_options_only_for_gpt5():
    assert ModelSettings("gpt-4", reasoning_effort="high").request_options() == {}
    options = ModelSettings("gpt-5-mini", reasoning_effort="high", verbosity="low").request_options()
    assert options == {"reasoning_effort": "high", "verbosity": "low"}


def test_conversation_title():
    plain = ModelSettings("gpt-5", reasoning_effort="medium", verbosity="medium", service_tier="default")
    assert conversation_title(PromptType.CURRENT, plain) == "Simulation · Current Prompt · gpt-5"
    tuned = ModelSettings("gpt-5", reasoning_effort="high", service_tier="priority")
    assert (
        conversation_title(PromptType.EDITED, tuned)
        == "Simulation · Edited Prompt · gpt-5 (reasoning: high, priority: priority)"
    )


# ---------------------------------------------------------------------------
# /api/simulate
# ---------------------------------------------------------------------------


def _body(**overrides) -> dict:
    body = {"oldPrompt": "You are terse.", "newPrompt": "You are friendly.", "scenarioKey": "beauty-salon"}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_simulate_builtin_scenario(client, alice, openai_key, fake_llm):
    headers, _ = alice
    r = await client.post("/api/simulate", json=_body(), headers=headers)

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    assert r.headers["cache-control"] == "no-cache"
    events = _parse_body(r.text)
    assert events[0] == {"type": "start", "scenarioName": "Customer x Beauty Salon", "totalTurns": 2}
    assert events[-1] == {"type": "done"}
    assert fake_llm.api_keys == [openai_key]
    assert len(fake_llm.calls) == 4
    assert {c["model"] for c in fake_llm.calls} == {settings.default_model}


@pytest.mark.asyncio
async def test_simulate_published_scenario_with_variables(client, alice, openai_key, fake_llm):
    headers, _ = alice
    await client.post("/api/variables", json={"key": "customer_name", "value": "Alex"}, headers=headers)
    scenario = (
        await client.post(
            "/api/scenarios",
            json={
                "name": "Late order",
                "status": "PUBLISHED",
                "turns": [
                    {"turnType": "USER", "userText": "I'm {{customer_name}}, where is my food?"},
                    {"turnType": "EXPECT"},
                ],
            },
            headers=headers,
        )
    ).json()

    r = await client.post("/api/simulate", json=_body(scenarioKey=scenario["id"]), headers=headers)
    assert r.status_code == 200
    events = _parse_body(r.text)
    assert events[0]["totalTurns"] == 1
    users = [e["data"]["content"] for e in events if e["type"] == "message" and e["data"]["role"] == "user"]
    assert users == ["I'm Alex, where is my food?"] * 2


@pytest.mark.asyncio
async def test_simulate_model_config(client, alice, openai_key, fake_llm):
    headers, _ = alice
    body = _body(modelConfig={"model": "gpt-5-mini", "reasoningEffort": "high", "verbosity": "medium"})
    r = await client.post("/api/simulate", json=body, headers=headers)
    assert r.status_code == 200

    assert all(c["model"] == "gpt-5-mini" for c in fake_llm.calls)
    assert all(c["options"] == {"reasoning_effort": "high", "verbosity": "medium"} for c in fake_llm.calls)
    completes = [e for e in _parse_body(r.text) if e["type"] == "complete"]
    assert {c["data"]["title"] for c in completes} == {
        "Simulation · Current Prompt · gpt-5-mini (reasoning: high)",
        "Simulation · Edited Prompt · gpt-5-mini (reasoning: high)",
    }


@pytest.mark.asyncio
async def test_simulate_draft_scenario_not_found(client, alice, openai_key):
    headers, _ = alice
    scenario = (
        await client.post(
            "/api/scenarios",
            json={"name": "Draft", "turns": [{"turnType": "USER", "userText": "hi"}]},
            headers=headers,
        )
    ).json()
    r = await client.post("/api/simulate", json=_body(scenarioKey=scenario["id"]), headers=headers)
    assert r.status_code == 404
    assert r.json()["error"] == "NOT_FOUND"

    r = await client.post("/api/simulate", json=_body(scenarioKey="no-such-scenario"), headers=headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_simulate_scenario_without_user_turns(client, alice, openai_key):
    headers, _ = alice
    scenario = (
        await client.post(
            "/api/scenarios",
            json={"name": "Silent", "status": "PUBLISHED", "turns": [{"turnType": "EXPECT"}]},
            headers=headers,
        )
    ).json()
    r = await client.post("/api/simulate", json=_body(scenarioKey=scenario["id"]), headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION"


@pytest.mark.asyncio
async def test_simulate_requires_api_key(client, alice, fake_llm):
    headers, _ = alice
    r = await client.post("/api/simulate", json=_body(), headers=headers)
    assert r.status_code == 400
    assert "API key" in r.json()["message"]
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_simulate_without_encryption_secret(client, alice, openai_key, monkeypatch):
    headers, _ = alice
    monkeypatch.setattr(settings, "encryption_key", None)
    r = await client.post("/api/simulate", json=_body(), headers=headers)
    assert r.status_code == 500
    assert r.json()["error"] == "SERVER_MISCONFIGURED"


@pytest.mark.asyncio
async def test_simulate_with_undecryptable_key_asks_for_a_new_one(client, alice, openai_key, fake_llm, monkeypatch):
    headers, _ = alice
    monkeypatch.setattr(settings, "encryption_key", "rotated-" + settings.encryption_key)
    r = await client.post("/api/simulate", json=_body(), headers=headers)
    assert r.status_code == 400
    assert "API key" in r.json()["message"]
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_simulate_rejects_unknown_fields(client, alice, openai_key):
    headers, _ = alice
    r = await client.post("/api/simulate", json=_body(temperature=2), headers=headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_simulate_requires_auth(client):
    r = await client.post("/api/simulate", json=_body())
    assert r.status_code == 401
