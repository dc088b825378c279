"""Tests for consensus/invoker.py and the provider message helpers."""

from consensus.invoker import build_messages, invoke_agent
from consensus.providers.base import split_system
from tests.conftest import make_agent


def test_build_messages_without_context():
    agent = make_agent("advisor_alpha")
    messages = build_messages(agent, "Solve it.")
    assert messages == [
        {"role": "system", "content": "You are advisor_alpha."},
        {"role": "user", "content": "Solve it."},
    ]


def test_build_messages_with_context_before_prompt():
    agent = make_agent("advisor_alpha")
    messages = build_messages(agent, "Solve it.", context="Search results: ...")
    assert [m["role"] for m in messages] == ["system", "user", "user"]
    assert messages[1]["content"] == "Search results: ..."
    assert messages[2]["content"] == "Solve it."


async def test_invoke_agent_passes_messages_and_round():
    agent = make_agent("advisor_alpha", "Adopt policy X.")
    response = await invoke_agent(agent, "Solve it.", round_number=2, context="ctx")
    assert response.content == "Adopt policy X."
    messages, round_number = agent.provider.generate.call_args.args
    assert round_number == 2
    assert messages[-1] == {"role": "user", "content": "Solve it."}


def test_split_system():
    system, turns = split_system([
        {"role": "system", "content": "Preamble"},
        {"role": "user", "content": "ctx"},
        {"role": "user", "content": "prompt"},
    ])
    assert system == "Preamble"
    assert turns == ["ctx", "prompt"]
