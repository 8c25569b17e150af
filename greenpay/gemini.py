import asyncio
import threading

import google.generativeai as genai

from .assistant import SYSTEM_PROMPT, AssistantAdapter


class GeminiError(Exception):
    pass


class GeminiAdapter(AssistantAdapter):
    name = "gemini"

    def __init__(self, api_key: str, model: str):
        self._api_key = api_key.strip()
        self._model = model
        self._configure_lock = threading.Lock()

    async def reply(self, messages: list[dict[str, str]], request_id: str) -> str:  # noqa: ARG002
        if not self._api_key:
            raise GeminiError("Google AI API key is not configured.")
        contents = build_contents(messages)
        return await asyncio.to_thread(self._generate_text, contents)

    def _generate_text(self, contents: list[dict]) -> str:
        model = self._build_model()
        response = model.generate_content(contents)
        text = _extract_text(response)
        if text:
            return text
        raise GeminiError("Gemini returned empty response.")

    def _build_model(self):
        with self._configure_lock:
            genai.configure(api_key=self._api_key)
            return genai.GenerativeModel(self._model)


def build_contents(messages: list[dict[str, str]]) -> list[dict]:
    # Gemini has no system role here; the prompt is primed as a user turn.
    contents = [
        {"role": "user", "parts": [{"text": SYSTEM_PROMPT}]},
        {"role": "model", "parts": [{"text": "Understood."}]},
    ]
    for message in messages:
        role = "model" if message["role"] == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": message["content"]}]})
    return contents


def _extract_text(response) -> str | None:
    text = getattr(response, "text", None)
    if text:
        return text
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) if content else None
    if not parts:
        return None
    collected = [part.text for part in parts if getattr(part, "text", None)]
    return "".join(collected) if collected else None
