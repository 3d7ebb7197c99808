"""
AI Text Providers - OpenAI, Anthropic Claude and Google Gemini.

Each provider turns a prompt plus prospect context into reply text. Any
failure is raised as AIProviderError; the caller decides the fallback.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import AsyncOpenAI, OpenAIError
from structlog import get_logger

logger = get_logger(__name__)

MAX_OUTPUT_TOKENS = 500
ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class AIProviderType(str, Enum):
    """Supported AI text providers."""

    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"


class AIProviderError(Exception):
    """Raised when a provider cannot produce a reply."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


@dataclass(frozen=True)
class CompanyInfo:
    name: str
    description: str
    services: list[str]
    values: list[str]
    tone: str


@dataclass(frozen=True)
class ConversationSummary:
    date: str
    topic: str
    summary: str


@dataclass(frozen=True)
class AIContext:
    """What a provider knows about the prospect and the company."""

    prospect_name: str
    prospect_email: str
    message: str
    is_returning_prospect: bool
    company: CompanyInfo
    previous_conversations: list[ConversationSummary] = field(default_factory=list)


class AIProvider(Protocol):
    name: str

    async def generate(self, prompt: str, context: AIContext | None = None) -> str: ...


def build_system_prompt(context: AIContext | None) -> str:
    """Instructions shared by every provider."""
    if context is None:
        return (
            "You are a customer service assistant who replies with empathy "
            "and professionalism."
        )

    company = context.company
    returning = context.is_returning_prospect
    lines = [
        f"You are a customer service representative for {company.name}.",
        "",
        "COMPANY PROFILE:",
        f"- Company: {company.name}",
        f"- Mission: {company.description}",
        f"- Main services: {', '.join(company.services)}",
        f"- Values: {', '.join(company.values)}",
        f"- Communication style: {company.tone}",
        "",
        "CONTACT:",
        f"- Prospect: {context.prospect_name}",
        "- Type: "
        + (
            "returning contact (acknowledge the existing relationship)"
            if returning
            else "first contact (make a good first impression)"
        ),
    ]

    if context.previous_conversations:
        lines += ["", "PREVIOUS CONVERSATIONS:"]
        lines += [
            f"- {c.date} [{c.topic}] {c.summary}" for c in context.previous_conversations
        ]

    lines += [
        "",
        "GUIDELINES:",
        f"- Use a {company.tone} tone that stays warm",
        "- Show genuine empathy for the request",
        "- "
        + ("Thank them for their continued trust" if returning else "Build a positive first connection"),
        "- Relate the answer to our services where relevant",
        "- Invite them to continue the conversation",
        "- Keep the reply between 150 and 300 words",
        "- Do not include a greeting; the email template adds one",
    ]
    return "\n".join(lines)


class OpenAIProvider:
    """Chat completions through the official OpenAI SDK."""

    name = "OpenAI"

    def __init__(self, api_key: str, model: str) -> None:
        self.model = model
        self._client = AsyncOpenAI(api_key=api_key)

    async def generate(self, prompt: str, context: AIContext | None = None) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                max_tokens=MAX_OUTPUT_TOKENS,
                temperature=0.7,
                messages=[
                    {"role": "system", "content": build_system_prompt(context)},
                    {"role": "user", "content": prompt},
                ],
            )
        except OpenAIError as e:
            raise AIProviderError(self.name, str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AIProviderError(self.name, "Empty response")
        return content


class ClaudeProvider:
    """Anthropic Messages API over httpx."""

    name = "Anthropic Claude"

    def __init__(
        self, api_key: str, model: str, http_client: httpx.AsyncClient | None = None
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def generate(self, prompt: str, context: AIContext | None = None) -> str:
        try:
            response = await self.http_client.post(
                ANTHROPIC_MESSAGES_URL,
                headers={
                    "x-api-key": self.api_key,
                    "anthropic-version": ANTHROPIC_VERSION,
                    "content-type": "application/json",
                },
                json={
                    "model": self.model,
                    "max_tokens": MAX_OUTPUT_TOKENS,
                    "system": build_system_prompt(context),
                    "messages": [{"role": "user", "content": prompt}],
                },
            )
        except httpx.HTTPError as e:
            raise AIProviderError(self.name, str(e)) from e

        if response.status_code >= 400:
            logger.error("claude_api_error", status=response.status_code, error=response.text)
            raise AIProviderError(self.name, f"API error: {response.status_code}")

        try:
            blocks = response.json().get("content", [])
        except ValueError as e:
            raise AIProviderError(self.name, "Invalid JSON response") from e
        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        if not text:
            raise AIProviderError(self.name, "Empty response")
        return text

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


class GeminiProvider:
    """Google Gemini through the google-genai SDK."""

    name = "Google Gemini"

    def __init__(self, api_key: str, model: str) -> None:
        self.model = model
        self._client = genai.Client(api_key=api_key)

    async def generate(self, prompt: str, context: AIContext | None = None) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=genai_types.GenerateContentConfig(
                    system_instruction=build_system_prompt(context),
                    temperature=0.7,
                    max_output_tokens=MAX_OUTPUT_TOKENS,
                ),
            )
        except genai_errors.APIError as e:
            raise AIProviderError(self.name, str(e)) from e

        if not response.text:
            raise AIProviderError(self.name, "Empty response")
        return response.text
