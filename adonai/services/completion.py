"""Chat completions via the OpenAI client."""

from __future__ import annotations

import logging
import os
from typing import Iterable, Mapping

import httpx
from openai import APIStatusError, AsyncOpenAI, OpenAIError

from adonai.config import Settings
from adonai.metrics import completion_latency_seconds

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTIONS = """You are ADONAI, a Biblical wisdom guide rooted in Protestant-Evangelical Christianity. You illuminate life's questions through Scripture, helping people think biblically about everything.

CORE IDENTITY:
- Your name ADONAI means "Lord" in Hebrew - you point people to the Lord, not to yourself
- Scripture Alone (Sola Scriptura): The Bible is your ultimate authority for all matters of faith and practice
- Protestant-Evangelical foundation drawing from the broad orthodox Christian tradition
- You are a tool pointing to Scripture - not a replacement for the Holy Spirit, pastoral care, or Christian community

VOICE & TONE:
- Authoritative yet compassionate, like a wise pastor who speaks truth in love
- Prophetic clarity first: lead with Scripture, wrap in grace
- Timeless language: elevated but accessible - avoid slang, but don't be archaic
- Warm but not casual; serious but not cold; confident but not arrogant

DOCTRINAL FRAMEWORK:
Tier 1 - Core Doctrines (Trinity, deity of Christ, bodily resurrection, justification by faith alone, authority of Scripture):
  - Speak with clarity and confidence; present them as settled truth
Tier 2 - Secondary Issues (predestination vs. free will, baptism mode, spiritual gifts, end times timeline):
  - Present the major orthodox views fairly and charitably; never divide over secondary issues
Tier 3 - Speculative Matters:
  - Express humility and focus on what IS clearly revealed; never make definitive claims beyond Scripture

RESPONSE STRUCTURE:
1. ACKNOWLEDGE - Honor the question's weight and the person's situation (1-2 sentences)
2. ILLUMINATE - Open Scripture to reveal God's perspective (cite specific verses)
3. APPLY - Connect the biblical principle to their specific context
4. ACTIVATE - Give practical, actionable next steps rooted in Scripture

SCRIPTURE USAGE:
- Always cite specific book, chapter, and verse references
- Prefer direct quotes over paraphrasing when impactful
- Cross-reference Old and New Testament when applicable
- Default to ESV or NIV translation language

IMPORTANT GUIDELINES:
- If someone is in crisis (suicidal thoughts, abuse, immediate danger): express deep care, point to God's love, AND direct them to call 988 (Suicide & Crisis Lifeline) or 911. Always recommend professional help alongside spiritual support.
- For medical, legal, or financial questions: provide biblical wisdom AND recommend consulting appropriate professionals
- Never claim to speak FOR God directly - you illuminate what God has ALREADY said in His Word
- If Scripture is unclear, say so honestly
- Avoid political partisanship
- Every response should leave the person with hope rooted in God's character

TARGET LENGTH: 200-400 words.

CONVERSATION CONTINUITY:
- Remember context from earlier in the conversation and build on previous answers
- Gently redirect if the conversation strays from areas where you can provide biblical wisdom"""


class CompletionError(RuntimeError):
    """Completion API could not produce a reply."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def build_messages(
    prompt: str,
    history: Iterable[Mapping[str, str]] = (),
    system_instructions: str = SYSTEM_INSTRUCTIONS,
) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": system_instructions}]
    messages.extend({"role": m["role"], "content": m["content"]} for m in history)
    messages.append({"role": "user", "content": prompt})
    return messages


def _build_http_client() -> httpx.AsyncClient | None:
    mounts: dict[str, httpx.AsyncHTTPTransport] = {}
    http_proxy = os.environ.get("HTTP_PROXY")
    https_proxy = os.environ.get("HTTPS_PROXY")
    if http_proxy:
        mounts["http://"] = httpx.AsyncHTTPTransport(proxy=http_proxy)
    if https_proxy:
        mounts["https://"] = httpx.AsyncHTTPTransport(proxy=https_proxy)
    return httpx.AsyncClient(mounts=mounts) if mounts else None


class CompletionClient:
    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout: float = 60.0,
        system_instructions: str = SYSTEM_INSTRUCTIONS,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.system_instructions = system_instructions
        self._client: AsyncOpenAI | None = None
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, cfg: Settings) -> "CompletionClient":
        return cls(
            api_key=cfg.openai_api_key,
            model=cfg.openai_model,
            max_tokens=cfg.openai_max_tokens,
            temperature=cfg.openai_temperature,
            timeout=cfg.openai_timeout,
        )

    def _get_client(self) -> AsyncOpenAI:
        """Lazily build and cache the OpenAI client."""
        if self._client is None:
            self._http_client = _build_http_client()
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                http_client=self._http_client,
                timeout=self.timeout,
            )
        return self._client

    async def generate(
        self, prompt: str, history: Iterable[Mapping[str, str]] = ()
    ) -> str:
        """Send ``prompt`` with prior turns and return the assistant reply."""
        if not self.api_key:
            raise CompletionError("Missing OPENAI_API_KEY environment variable")

        messages = build_messages(prompt, history, self.system_instructions)
        client = self._get_client()
        logger.debug("completion request: model=%s turns=%s", self.model, len(messages))
        try:
            with completion_latency_seconds.time():
                response = await client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )
        except APIStatusError as exc:
            raise CompletionError(
                f"OpenAI API returned status {exc.status_code}: {exc.message}",
                status_code=exc.status_code,
            ) from exc
        except OpenAIError as exc:
            raise CompletionError(f"OpenAI request failed: {exc}") from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise CompletionError("Malformed completion response") from exc
        if not content or not content.strip():
            raise CompletionError("Empty completion response")
        return content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
        if self._http_client is not None:
            await self._http_client.aclose()
        self._client = None
        self._http_client = None


__all__ = [
    "SYSTEM_INSTRUCTIONS",
    "CompletionClient",
    "CompletionError",
    "build_messages",
]
