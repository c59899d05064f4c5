import asyncio
import json
import logging
import re
from typing import Optional, List, Tuple, Any
from groq import AsyncGroq
from google import genai
from ..core.config import settings

logger = logging.getLogger(__name__)

STRICT_JSON_SUFFIX = "\n\nReturn valid JSON only. No markdown, no explanations."


class LLMResponseError(ValueError):
    """The model replied, but not with parseable JSON."""

    def __init__(self, message: str, content: str = ""):
        super().__init__(message)
        self.content = content


def _strip_fences(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.IGNORECASE)
        text = re.sub(r"\s*```$", "", text)
    return text.strip()


def parse_json_response(content: Optional[str]) -> Any:
    """
    Parse a model reply as JSON. Tolerates markdown code fences and prose
    around the payload by falling back to the outermost {...} or [...] span.
    Raises LLMResponseError when nothing parses.
    """
    raw = (content or "").strip()
    if not raw:
        raise LLMResponseError("Empty model response", raw)

    candidates = [raw, _strip_fences(raw)]
    spans = []
    for opening, closing in (("{", "}"), ("[", "]")):
        start, end = raw.find(opening), raw.rfind(closing)
        if start != -1 and end > start:
            spans.append((start, end))
    # Whichever bracket opens first is the outermost payload
    candidates.extend(raw[start:end + 1] for start, end in sorted(spans))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise LLMResponseError(f"Model returned non-JSON content: {raw[:200]}", raw)


class LLMService:
    """
    Service for interacting with LLMs (Groq and Google Gemini).
    Fallback order: Groq 1 -> Gemini 1 -> Gemini 2 -> Groq 2 (last resort)
    """

    def __init__(self):
        # List of (client, name, provider) tuples in fallback order
        self.clients: List[Tuple[Any, str, str]] = []
        self.current_index: int = 0

        if settings.GROQ_API_KEY:
            self.clients.append((AsyncGroq(api_key=settings.GROQ_API_KEY), "GROQ_API_KEY (primary)", "groq"))
        if settings.GEMINI_API_KEY:
            self.clients.append((genai.Client(api_key=settings.GEMINI_API_KEY), "GEMINI_API_KEY (primary)", "gemini"))
        if settings.GEMINI_API_KEY_2:
            self.clients.append((genai.Client(api_key=settings.GEMINI_API_KEY_2), "GEMINI_API_KEY_2 (backup)", "gemini"))
        if settings.GROQ_API_KEY_2:
            self.clients.append((AsyncGroq(api_key=settings.GROQ_API_KEY_2), "GROQ_API_KEY_2 (last resort)", "groq"))

        logger.info(
            "LLM service initialized with %d providers: %s",
            len(self.clients), ", ".join(name for _, name, _ in self.clients) or "none",
        )

    @property
    def available(self) -> bool:
        return bool(self.clients)

    def _is_rate_limit_error(self, error: Exception) -> bool:
        error_str = str(error).lower()
        return (
            "429" in error_str or
            "rate limit" in error_str or
            "rate_limit" in error_str or
            "quota" in error_str or
            "resource exhausted" in error_str
        )

    async def _try_groq(
            self,
            client: AsyncGroq,
            messages: List[dict],
            temperature: float,
            max_tokens: int
    ) -> str:
        response = await client.chat.completions.create(
            model=settings.GROQ_MODEL,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens
        )
        return response.choices[0].message.content

    async def _try_gemini(
            self,
            client: genai.Client,
            messages: List[dict],
            temperature: float,
            max_tokens: int
    ) -> str:
        """Gemini takes a single prompt: system instructions are prepended to the user content."""
        prompt_parts = []
        for msg in messages:
            if msg["role"] == "system":
                prompt_parts.append(f"Instructions: {msg['content']}\n\n")
            elif msg["role"] == "user":
                prompt_parts.append(msg["content"])

        response = await client.aio.models.generate_content(
            model=settings.GEMINI_MODEL,
            contents="".join(prompt_parts),
            config={
                "temperature": temperature,
                "max_output_tokens": max_tokens
            }
        )
        return response.text

    async def generate(
            self,
            prompt: str,
            system_prompt: Optional[str] = None,
            temperature: float = 0.7,
            max_tokens: int = 2048
    ) -> str:
        """
        Generate a response from the LLM, walking the provider chain until one answers.
        The last provider that worked is tried first on the next call.
        """
        if not self.clients:
            raise RuntimeError("No LLM service available. Please configure GROQ_API_KEY or GEMINI_API_KEY.")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        last_error = None
        for i in range(len(self.clients)):
            idx = (self.current_index + i) % len(self.clients)
            client, name, provider = self.clients[idx]

            try:
                if provider == "groq":
                    result = await self._try_groq(client, messages, temperature, max_tokens)
                else:
                    result = await self._try_gemini(client, messages, temperature, max_tokens)

                self.current_index = idx
                return result

            except Exception as e:
                last_error = e
                if self._is_rate_limit_error(e):
                    logger.warning("Rate limited on %s, trying next provider", name)
                else:
                    logger.warning("LLM error (%s): %s", name, e)

        raise RuntimeError(f"All LLM providers failed. Last error: {last_error}")

    async def generate_json(
            self,
            prompt: str,
            system_prompt: Optional[str] = None,
            temperature: float = 0.3
    ) -> str:
        """
        Generate a JSON response from the LLM.
        Uses lower temperature for more deterministic output.
        """
        json_system = (system_prompt or "") + "\n\nRespond ONLY with valid JSON. No explanations or markdown."
        return await self.generate(prompt, json_system, temperature)


async def request_json(
        llm: Any,
        prompt: str,
        system_prompt: Optional[str] = None,
        timeout: Optional[float] = None
) -> Any:
    """
    Ask the model for JSON and parse it.

    Each call is bounded by `timeout` (settings.LLM_TIMEOUT_SECONDS by default).
    An unparseable reply gets exactly one more attempt with a stricter
    instruction appended; timeouts and provider errors are not retried.
    Raises asyncio.TimeoutError, RuntimeError or LLMResponseError.
    """
    timeout = settings.LLM_TIMEOUT_SECONDS if timeout is None else timeout

    content = await asyncio.wait_for(llm.generate_json(prompt, system_prompt), timeout=timeout)
    try:
        return parse_json_response(content)
    except LLMResponseError as e:
        logger.warning("Retrying after unparseable model response: %s", e)

    content = await asyncio.wait_for(
        llm.generate_json(prompt + STRICT_JSON_SUFFIX, system_prompt), timeout=timeout
    )
    return parse_json_response(content)


# Singleton instance
llm_service = LLMService()
