"""Unit tests for the Scene Writer Agent."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from lyriclens.agents.base import (
    GENERATION_FAILED,
    INVALID_INPUT,
    INVALID_JSON,
    QUOTA_EXHAUSTED,
    AgentExecutionError,
)
from lyriclens.agents.scene_writer import (
    DEFAULT_SEED,
    SceneWriterAgent,
    SceneWriterInput,
)
from lyriclens.schemas.project import Character


VALID_REPLY = {
    "visuals": "Mia walks through rain",
    "cameraWork": "Handheld tracking shot",
    "lightingMood": "Sodium orange",
    "sectionTitle": "Verse 1",
}


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def make_client(content=None, side_effect=None):
    client = Mock()
    client.chat.completions.create = AsyncMock(
        return_value=chat_response(content),
        side_effect=side_effect,
    )
    return client


class RateLimited(Exception):
    status_code = 429


class TestSceneWriterExecute:
    """Test request/response handling."""

    def test_successful_reply(self):
        client = make_client(json.dumps(VALID_REPLY))
        agent = SceneWriterAgent(client)

        content = asyncio.run(agent.execute(SceneWriterInput("rain on the window")))

        assert content.visuals == "Mia walks through rain"
        assert content.section_title == "Verse 1"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["model"] == SceneWriterAgent.DEFAULT_MODEL
        assert "rain on the window" in kwargs["messages"][-1]["content"]

    def test_empty_reply(self):
        agent = SceneWriterAgent(make_client(""))

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(SceneWriterInput("x")))

        assert exc_info.value.error_code == INVALID_JSON
        assert exc_info.value.message == "No response from AI"

    def test_non_json_reply(self):
        agent = SceneWriterAgent(make_client("Sure! Here is your scene"))

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(SceneWriterInput("x")))

        assert exc_info.value.error_code == INVALID_JSON

    def test_reply_missing_fields(self):
        agent = SceneWriterAgent(make_client(json.dumps({"visuals": "only this"})))

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(SceneWriterInput("x")))

        assert exc_info.value.error_code == INVALID_JSON

    def test_rate_limit_maps_to_quota(self):
        agent = SceneWriterAgent(make_client(side_effect=RateLimited("Too Many Requests")))

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(SceneWriterInput("x")))

        assert exc_info.value.error_code == QUOTA_EXHAUSTED

    def test_other_failure_is_generic(self):
        agent = SceneWriterAgent(make_client(side_effect=ConnectionError("reset by peer")))

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(SceneWriterInput("x")))

        assert exc_info.value.error_code == GENERATION_FAILED

    def test_blank_lyrics_rejected(self):
        client = make_client(json.dumps(VALID_REPLY))
        agent = SceneWriterAgent(client)

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(SceneWriterInput("   ")))

        assert exc_info.value.error_code == INVALID_INPUT
        client.chat.completions.create.assert_not_called()


class TestSceneWriterPrompt:
    """Test prompt construction."""

    def test_default_seed_used_when_empty(self):
        prompt = SceneWriterAgent(Mock()).build_prompt(SceneWriterInput("x"))
        assert DEFAULT_SEED in prompt

    def test_characters_listed(self):
        roster = [Character(id="c1", name="Mia"), Character(id="c2", name="Leo")]
        prompt = SceneWriterAgent(Mock()).build_prompt(
            SceneWriterInput("x", narrative_seed="noir", characters=roster)
        )
        assert "CHARACTERS IN STORY: Mia, Leo." in prompt
        assert "NARRATIVE ANGLE/DIRECTION: noir" in prompt

    def test_no_character_line_without_roster(self):
        prompt = SceneWriterAgent(Mock()).build_prompt(SceneWriterInput("x"))
        assert "CHARACTERS IN STORY" not in prompt

    def test_retry_policy_targets_quota_only(self):
        policy = SceneWriterAgent(Mock()).get_retry_policy()
        assert policy.retryable_errors == [QUOTA_EXHAUSTED]
