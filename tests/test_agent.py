import json
from unittest.mock import MagicMock

import pytest

from tool_agent.agent import Agent, build_system_prompt
from tool_agent.client import CompletionError
from tool_agent.conversation import Conversation
from tool_agent.models import AbortReason, AgentState, Role
from tool_agent.tools import ToolDescriptor, ToolRegistry, default_registry


def _action(tool: str, tool_input: str, content: str = "") -> str:
    return json.dumps({"step": "ACTION", "tool": tool, "tool_input": tool_input, "content": content})


def _output(content: str) -> str:
    return json.dumps({"step": "OUTPUT", "content": content})


def _scripted(*responses: str) -> MagicMock:
    client = MagicMock()
    client.complete.side_effect = list(responses)
    return client


def _observations(convo: Conversation) -> list[dict]:
    return [
        json.loads(m.content)
        for m in convo.messages[2:]
        if m.role is Role.USER
    ]


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


def test_weather_query_finishes_in_two_rounds():
    client = _scripted(
        _action("getWeatherInfo", "Paris", "Checking the weather"),
        _output("It is 28 degrees Celsius in Paris."),
    )
    agent = Agent(client, default_registry())
    convo = Conversation(agent.system_prompt)

    result = agent.run("what is the weather in Paris", conversation=convo)

    assert result.state is AgentState.DONE
    assert result.done
    assert result.output == "It is 28 degrees Celsius in Paris."
    assert result.iterations == 2
    assert client.complete.call_count == 2
    assert [m.role for m in convo] == [
        Role.SYSTEM,
        Role.USER,
        Role.ASSISTANT,
        Role.USER,
        Role.ASSISTANT,
    ]
    assert _observations(convo) == [
        {"step": "OBSERVE", "content": "28 DEGREE CELSIUS for Paris"}
    ]


def test_unknown_tool_becomes_error_observation_and_loop_continues():
    client = _scripted(
        _action("deleteEverything", "/"),
        _output("I could not do that."),
    )
    agent = Agent(client, default_registry())
    convo = Conversation(agent.system_prompt)

    result = agent.run("wipe the disk", conversation=convo)

    assert result.state is AgentState.DONE
    assert result.iterations == 2
    (observation,) = _observations(convo)
    assert observation["step"] == "OBSERVE"
    assert observation["content"].startswith("Error: ")
    assert "deleteEverything" in observation["content"]


def test_tool_failure_is_forwarded_verbatim():
    def broken(_: str) -> str:
        raise RuntimeError("permission denied: /etc/shadow")

    registry = ToolRegistry([ToolDescriptor(name="read", description="read", invoke=broken)])
    client = _scripted(_action("read", "/etc/shadow"), _output("no access"))
    agent = Agent(client, registry)
    convo = Conversation(agent.system_prompt)

    agent.run("read shadow", conversation=convo)

    assert _observations(convo)[0]["content"] == "Error: permission denied: /etc/shadow"


def test_malformed_response_aborts_on_first_round():
    client = MagicMock()
    client.complete.return_value = "Sure! Here is the answer: 42"
    agent = Agent(client, default_registry())
    convo = Conversation(agent.system_prompt)

    result = agent.run("anything", conversation=convo)

    assert result.state is AgentState.ABORTED
    assert result.reason is AbortReason.PARSE_FAILURE
    assert result.raw == "Sure! Here is the answer: 42"
    assert result.iterations == 1
    assert client.complete.call_count == 1
    # The offending response is still recorded as the assistant's turn.
    assert convo.last.role is Role.ASSISTANT


def test_deeply_nested_response_aborts_without_crashing():
    client = MagicMock()
    client.complete.return_value = '{"step": ' * 50000

    result = Agent(client, default_registry()).run("x")

    assert result.state is AgentState.ABORTED
    assert result.reason is AbortReason.PARSE_FAILURE
    assert client.complete.call_count == 1


def test_invalid_shape_aborts():
    client = _scripted(json.dumps({"step": "ACTION", "tool": "getWeatherInfo"}))
    result = Agent(client, default_registry()).run("weather?")
    assert result.reason is AbortReason.PARSE_FAILURE
    assert "tool_input" in result.detail


@pytest.mark.parametrize("cap", [1, 3, 25])
def test_never_finishing_runs_exactly_to_the_cap(cap):
    client = MagicMock()
    client.complete.return_value = _action("getWeatherInfo", "Paris")
    agent = Agent(client, default_registry(), max_iterations=cap)

    result = agent.run("loop forever")

    assert result.state is AgentState.ABORTED
    assert result.reason is AbortReason.ITERATION_LIMIT_EXCEEDED
    assert result.iterations == cap
    assert client.complete.call_count == cap


def test_output_on_final_allowed_round_is_done():
    client = _scripted(_action("getWeatherInfo", "Oslo"), _output("cold"))
    result = Agent(client, default_registry(), max_iterations=2).run("weather in Oslo")
    assert result.state is AgentState.DONE
    assert result.iterations == 2


# ---------------------------------------------------------------------------
# Think / unknown steps
# ---------------------------------------------------------------------------


def test_unknown_step_appends_nothing_and_continues():
    client = _scripted(
        json.dumps({"step": "PLAN", "content": "step one..."}),
        json.dumps({"note": "no discriminator"}),
        _output("done"),
    )
    agent = Agent(client, default_registry())
    convo = Conversation(agent.system_prompt)

    result = agent.run("plan something", conversation=convo)

    assert result.state is AgentState.DONE
    assert result.iterations == 3
    # system, user, then only assistant turns.
    assert [m.role for m in convo.messages[2:]] == [Role.ASSISTANT] * 3


def test_unknown_steps_until_cap():
    client = MagicMock()
    client.complete.return_value = json.dumps({"step": "WAIT"})
    result = Agent(client, default_registry(), max_iterations=4).run("hello")
    assert result.reason is AbortReason.ITERATION_LIMIT_EXCEEDED
    assert client.complete.call_count == 4


def test_unknown_step_correction_injects_observation():
    client = _scripted(json.dumps({"step": "PLAN"}), _output("ok"))
    agent = Agent(client, default_registry(), correct_unknown_steps=True)
    convo = Conversation(agent.system_prompt)

    agent.run("hello", conversation=convo)

    (observation,) = _observations(convo)
    assert observation["content"].startswith("Error: unrecognized step 'PLAN'")


def test_think_step_appends_nothing():
    client = _scripted(
        json.dumps({"step": "THINK", "content": "I should answer directly."}),
        _output("hi"),
    )
    agent = Agent(client, default_registry())
    convo = Conversation(agent.system_prompt)

    result = agent.run("say hi", conversation=convo)

    assert result.output == "hi"
    assert [m.role for m in convo.messages[2:]] == [Role.ASSISTANT, Role.ASSISTANT]


# ---------------------------------------------------------------------------
# Conversation handling
# ---------------------------------------------------------------------------


def test_full_conversation_is_replayed_each_round():
    client = _scripted(_action("getWeatherInfo", "Rome"), _output("warm"))
    agent = Agent(client, default_registry())

    agent.run("weather in Rome")

    first, second = (call.args[0] for call in client.complete.call_args_list)
    assert len(first) == 2
    assert len(second) == 4
    assert second[:2] == first
    assert first[0] == {"role": "system", "content": agent.system_prompt}


def test_each_query_gets_a_fresh_conversation():
    client = MagicMock()
    client.complete.return_value = _output("answer")
    agent = Agent(client, default_registry())

    agent.run("first")
    agent.run("second")

    second_payload = client.complete.call_args_list[1].args[0]
    assert [m["content"] for m in second_payload[1:]] == ["second"]


def test_round_timeout_is_threaded_to_client_and_tools():
    client = _scripted(_action("spy", "x"), _output("ok"))
    spy = MagicMock(return_value="seen")
    registry = MagicMock(wraps=ToolRegistry([ToolDescriptor(name="spy", description="", invoke=spy)]))
    registry.describe.return_value = "- spy(): "

    Agent(client, registry, round_timeout=7.5).run("go")

    for call in client.complete.call_args_list:
        assert call.kwargs["timeout"] == 7.5
    registry.invoke.assert_called_once_with("spy", "x", timeout=7.5)


def test_completion_failure_aborts():
    client = MagicMock()
    client.complete.side_effect = CompletionError("Completion request failed: timed out")
    result = Agent(client, default_registry()).run("hi")
    assert result.state is AgentState.ABORTED
    assert result.reason is AbortReason.COMPLETION_FAILED
    assert client.complete.call_count == 1


def test_system_prompt_lists_registered_tools():
    prompt = build_system_prompt(default_registry())
    assert "getWeatherInfo(city: string)" in prompt
    assert "executeCommand(command: string)" in prompt
    assert '{ "step": "OUTPUT", "content": "<final answer>" }' in prompt


def test_max_iterations_must_be_positive():
    with pytest.raises(ValueError):
        Agent(MagicMock(), default_registry(), max_iterations=0)
