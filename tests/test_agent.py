import logging
from datetime import datetime

import pytest

from agent.core import (
    AGE_GROUPS,
    MYTHS_CONTEXT,
    MYTHS_QUESTION,
    RESEARCH_QUESTION,
    SYSTEM_PROMPT,
    EyeCareAgent,
    find_age_group,
)
from agent.errors import InvalidAPIKeyError
from agent.extractors import MythRecord
from agent.model_client import ModelClient, PerplexityClient


class RecordingClient(ModelClient):
    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def generate(self, messages, *, generation=None):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply


def test_ask_question_builds_system_and_user_messages():
    client = RecordingClient("answer")
    agent = EyeCareAgent(client)

    assert agent.ask_question("What is glaucoma?", "Be brief.") == "answer"
    assert client.calls == [
        [
            {"role": "system", "content": SYSTEM_PROMPT + "Be brief."},
            {"role": "user", "content": "What is glaucoma?"},
        ]
    ]
    assert "medical disclaimer" in SYSTEM_PROMPT


def test_ask_question_without_context():
    client = RecordingClient("answer")
    EyeCareAgent(client).ask_question("Q")
    assert client.calls[0][0]["content"] == SYSTEM_PROMPT


def test_get_myths_parses_answer():
    client = RecordingClient("Myth 1: Sitting close to the TV ruins eyes\nFact: It causes strain, not damage.")
    myths = EyeCareAgent(client).get_myths()

    assert myths == [MythRecord("Sitting close to the TV ruins eyes", "It causes strain, not damage.")]
    system, user = client.calls[0]
    assert user["content"] == MYTHS_QUESTION
    assert system["content"].endswith(MYTHS_CONTEXT)


def test_get_research_parses_answer():
    now = datetime(2025, 1, 2)
    text = "1. Retinal implants\nA trial of retinal implants restored partial sight in twelve patients. doi:10.1/abc"
    client = RecordingClient(text)
    records = EyeCareAgent(client).get_research(now=now)

    assert len(records) == 1
    assert records[0].title == "Retinal implants"
    assert records[0].url == "https://doi.org/10.1/abc"
    assert records[0].date == now.strftime("%x")
    assert client.calls[0][1]["content"] == RESEARCH_QUESTION


def test_get_age_specific_advice_mentions_group():
    client = RecordingClient("Get yearly exams.")
    group = find_age_group("seniors")

    assert EyeCareAgent(client).get_age_specific_advice(group.name) == "Get yearly exams."
    system, user = client.calls[0]
    assert "Seniors (65+ years)" in user["content"]
    assert system["content"].endswith("specifically for Seniors (65+ years).")


def test_errors_are_logged_and_reraised_unchanged(caplog):
    error = InvalidAPIKeyError("Invalid API key. Please check your Perplexity API key.")
    agent = EyeCareAgent(RecordingClient(error=error))

    with caplog.at_level(logging.ERROR, logger="agent.core"):
        with pytest.raises(InvalidAPIKeyError) as info:
            agent.get_myths()

    assert info.value is error
    assert "Error fetching myths" in caplog.text


def test_from_api_key_builds_perplexity_client(valid_key):
    agent = EyeCareAgent.from_api_key(valid_key, model="sonar")
    assert isinstance(agent.model_client, PerplexityClient)
    assert agent.model_client.api_key == valid_key
    assert agent.model_client.model == "sonar"


def test_age_groups():
    assert [g.id for g in AGE_GROUPS] == ["children", "teens", "adults", "seniors"]
    assert find_age_group("teens").name == "Teenagers (13-19 years)"
    assert find_age_group("toddlers") is None
