import json

import pytest
import requests

import assistant


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        return self.payload


def completion(obj):
    content = obj if isinstance(obj, str) else json.dumps(obj)
    return FakeResponse({"choices": [{"message": {"content": content}}]})


@pytest.fixture
def calls(monkeypatch):
    sent = []

    def install(response):
        def fake_post(url, headers=None, json=None, timeout=None):
            sent.append({"url": url, "headers": headers, "json": json})
            if isinstance(response, Exception):
                raise response
            return response

        monkeypatch.setattr(assistant.requests, "post", fake_post)
        return sent

    return install


def test_event_ideas_fill_the_template(settings, calls):
    sent = calls(completion({"event_ideas": [{"title": "Harvest Fair", "description": "Games"}] * 3}))

    out = assistant.generate_event_ideas(settings, assistant.EventIdeasInput(keywords="youth, music"))

    assert [idea.title for idea in out.event_ideas] == ["Harvest Fair"] * 3
    request = sent[0]
    assert request["url"] == "https://llm.internal/v1/chat/completions"
    assert request["headers"]["Authorization"] == "Bearer sk-test"
    assert "youth, music" in request["json"]["messages"][1]["content"]
    assert request["json"]["response_format"] == {"type": "json_object"}


def test_sermon_outline_is_parsed(settings, calls):
    calls(
        completion(
            {
                "sermon_title": "Anchored",
                "outline": [{"point_title": "Introduction", "content": "...", "supporting_verses": ["Heb 6:19"]}],
            }
        )
    )

    out = assistant.generate_sermon_outline(settings, assistant.SermonOutlineInput(topic="Hope", scriptures="Heb 6:19"))

    assert out.outline[0].supporting_verses == ["Heb 6:19"]


def test_daily_quote_has_no_input(settings, calls):
    sent = calls(completion({"quote": "His mercies are new every morning.", "verse": "Lamentations 3:23"}))

    out = assistant.generate_daily_quote(settings)

    assert out.verse == "Lamentations 3:23"
    assert "{" not in sent[0]["json"]["messages"][1]["content"]


def test_counseling_schema_mismatch_is_an_error(settings, calls):
    calls(completion({"hopeful_message": "You are loved."}))

    with pytest.raises(assistant.GenerationError):
        assistant.generate_counseling_response(settings, assistant.CounselingInput(problem="I feel alone"))


def test_non_json_reply_is_an_error(settings, calls):
    calls(completion("Sure! Here are some ideas..."))

    with pytest.raises(assistant.GenerationError):
        assistant.generate_daily_quote(settings)


@pytest.mark.parametrize(
    "response",
    [FakeResponse({}, status_code=503), requests.ConnectionError("refused"), FakeResponse({"choices": []})],
)
def test_provider_failures_are_not_retried(settings, calls, response):
    sent = calls(response)

    with pytest.raises(assistant.GenerationError):
        assistant.generate_daily_quote(settings)
    assert len(sent) == 1


def test_missing_api_key(settings, calls):
    sent = calls(completion({}))

    with pytest.raises(assistant.GenerationError, match="not configured"):
        assistant.generate_daily_quote(settings.model_copy(update={"openai_api_key": None}))
    assert sent == []
