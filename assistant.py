"""
AI prompt flows

Each flow is a fixed prompt template plus declared input and output models.
The rendered prompt goes to an OpenAI-compatible /chat/completions endpoint
in JSON mode and the reply is parsed against the output model. Any failure
along the way raises GenerationError; nothing is retried or cached.
"""

import json
import logging
from typing import List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, Field, ValidationError

from schemas import SermonPoint
from settings import Settings

logger = logging.getLogger(__name__)

O = TypeVar("O", bound=BaseModel)


class GenerationError(Exception):
    pass


# ==========================
# INPUTS / OUTPUTS
# ==========================
class EventIdeasInput(BaseModel):
    keywords: str = Field(..., min_length=1, description="Comma-separated keywords to base the ideas on")


class EventIdea(BaseModel):
    title: str = Field(..., description="A creative, catchy event title")
    description: str = Field(..., description="A one-paragraph description of the event concept")


class EventIdeasOutput(BaseModel):
    event_ideas: List[EventIdea] = Field(..., description="Three event ideas")


class SermonOutlineInput(BaseModel):
    topic: str = Field(..., min_length=1, description="Main topic or title of the sermon")
    scriptures: str = Field(..., min_length=1, description="Comma-separated key passages")


class SermonOutlineOutput(BaseModel):
    sermon_title: str = Field(..., description="A compelling sermon title")
    outline: List[SermonPoint] = Field(..., description="Introduction, two or more main points, conclusion")


class DailyQuoteOutput(BaseModel):
    quote: str = Field(..., description="A short, hopeful quote for the day")
    verse: str = Field(..., description='A supporting Bible reference, e.g. "John 3:16"')


class CounselingInput(BaseModel):
    problem: str = Field(..., min_length=1, description="The struggle the member wants guidance on")


class CounselingOutput(BaseModel):
    hopeful_message: str = Field(..., description="A compassionate, encouraging opening message")
    relevant_scriptures: List[str] = Field(..., description="Two or three verses that speak to the problem")
    practical_advice: str = Field(..., description="Gentle spiritual next steps, never medical advice")


# ==========================
# FLOWS
# ==========================
class PromptFlow:
    def __init__(self, name: str, template: str, output_model: Type[O], input_model: Optional[Type[BaseModel]] = None):
        self.name = name
        self.template = template
        self.output_model = output_model
        self.input_model = input_model

    def render(self, data: Optional[BaseModel] = None) -> str:
        if self.input_model is None:
            return self.template
        return self.template.format(**self.input_model.model_validate(data).model_dump())

    def system_prompt(self) -> str:
        schema = json.dumps(self.output_model.model_json_schema())
        return f"Reply with a single JSON object that matches this JSON schema and nothing else:\n{schema}"

    def run(self, settings: Settings, data: Optional[BaseModel] = None):
        if not settings.openai_api_key:
            logger.warning("%s skipped: OPENAI_API_KEY not set.", self.name)
            raise GenerationError("The AI assistant is not configured.")

        payload = {
            "model": settings.openai_model,
            "temperature": 0.7,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": self.system_prompt()},
                {"role": "user", "content": self.render(data)},
            ],
        }
        headers = {
            "Authorization": f"Bearer {settings.openai_api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.post(
                f"{settings.openai_base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=settings.openai_timeout,
            )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            logger.exception("%s failed to reach the model provider", self.name)
            raise GenerationError("The AI assistant is unavailable right now.") from e

        try:
            return self.output_model.model_validate_json(content or "")
        except ValidationError as e:
            logger.error("%s returned output that does not match its schema: %s", self.name, e)
            raise GenerationError("The AI assistant returned an unexpected answer.") from e


event_idea_flow = PromptFlow(
    name="eventIdeaFlow",
    input_model=EventIdeasInput,
    output_model=EventIdeasOutput,
    template=(
        "You plan events for a Christian church.\n\n"
        "Come up with 3 creative, engaging event ideas built around these keywords: {keywords}.\n\n"
        "Give every idea a memorable title and a short description. "
        "Each idea must suit a church community."
    ),
)

sermon_outline_flow = PromptFlow(
    name="sermonOutlineFlow",
    input_model=SermonOutlineInput,
    output_model=SermonOutlineOutput,
    template=(
        "You are a theologian and pastor who writes clear, impactful sermons for a Christian congregation.\n\n"
        "Write a sermon outline for the topic and scriptures below.\n\n"
        "Topic: {topic}\n"
        "Key Scriptures: {scriptures}\n\n"
        "The outline needs a compelling sermon title; an Introduction that draws the listener in; "
        "at least two Main Points that explain and apply the scriptures; and a Conclusion with a "
        "call to action. Every point has a title, detailed content and supporting verses."
    ),
)

daily_quote_flow = PromptFlow(
    name="dailyQuoteFlow",
    output_model=DailyQuoteOutput,
    template=(
        "You bring daily encouragement to a Christian community.\n\n"
        "Write one short, hopeful quote for today, and name a single Bible verse that supports it."
    ),
)

counselor_flow = PromptFlow(
    name="personalCounselorFlow",
    input_model=CounselingInput,
    output_model=CounselingOutput,
    template=(
        "You are a caring, experienced Christian pastor. A member of your church has come to you "
        "for guidance with a personal struggle. Offer spiritual and pastoral guidance only; never "
        "medical or clinical advice.\n\n"
        "The member is struggling with: {problem}\n\n"
        "Answer in three parts. First a hopeful message that acknowledges their pain and reminds "
        "them of God's love and grace. Then 2-3 Bible verses that speak directly to the situation. "
        "Finally a few gentle next steps such as prayer, journaling or reaching out to the church "
        "community.\n\n"
        "Stay loving and never judge."
    ),
)


def generate_event_ideas(settings: Settings, data: EventIdeasInput) -> EventIdeasOutput:
    return event_idea_flow.run(settings, data)


def generate_sermon_outline(settings: Settings, data: SermonOutlineInput) -> SermonOutlineOutput:
    return sermon_outline_flow.run(settings, data)


def generate_daily_quote(settings: Settings) -> DailyQuoteOutput:
    return daily_quote_flow.run(settings)


def generate_counseling_response(settings: Settings, data: CounselingInput) -> CounselingOutput:
    return counselor_flow.run(settings, data)
