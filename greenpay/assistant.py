import uuid

from .settings import Settings

ROLES = ("user", "assistant")

SYSTEM_PROMPT = (
    "You are a helpful AI assistant for GreenPay, a fintech payment application for KES users.\n"
    "Only answer questions about GreenPay's features and services: bill payments and money "
    "transfers, virtual cards and airtime purchases, currency exchange, document uploads and "
    "KYC verification, support and account management, loans, WhatsApp support, two-factor "
    "authentication and biometric login, and the public API.\n"
    "If asked about unrelated topics, politely redirect the user."
)


class AssistantAdapter:
    name = "base"

    async def reply(self, messages: list[dict[str, str]], request_id: str) -> str:
        raise NotImplementedError


class MockAdapter(AssistantAdapter):
    name = "mock"

    async def reply(self, messages: list[dict[str, str]], request_id: str) -> str:  # noqa: ARG002
        question = last_user_message(messages)
        return f"GreenPay assistant (mock): you asked about \"{question}\"."


def build_adapter(settings: Settings) -> AssistantAdapter:
    backend = settings.model_backend.strip().lower()
    if backend == "gemini":
        from .gemini import GeminiAdapter

        return GeminiAdapter(settings.gemini_api_key, settings.gemini_model)
    return MockAdapter()


def last_user_message(messages: list[dict[str, str]]) -> str:
    for message in reversed(messages):
        if message.get("role") == "user":
            return " ".join(message.get("content", "").split())
    return ""


def request_id() -> str:
    return uuid.uuid4().hex
