"""OpenAI client construction shared by the decision strategies."""
from openai import AsyncOpenAI, OpenAIError

from agentscale.config.settings import Settings
from agentscale.domain.exceptions import DecisionUnavailable


def build_openai_client(settings: Settings) -> AsyncOpenAI:
    """
    Create an AsyncOpenAI client from settings.

    Falls back to the OPENAI_API_KEY environment variable when no key is
    configured, as the SDK does.

    Raises:
        DecisionUnavailable: If no API key can be found
    """
    client_kwargs = {
        "timeout": settings.decision_timeout_seconds,
        "max_retries": 1,
    }
    if settings.openai_api_key:
        client_kwargs["api_key"] = settings.openai_api_key.get_secret_value()
    if settings.openai_base_url:
        client_kwargs["base_url"] = settings.openai_base_url

    try:
        return AsyncOpenAI(**client_kwargs)
    except OpenAIError as e:
        raise DecisionUnavailable(
            f"OpenAI client could not be created: {e}",
            suggested_action="Set OPENAI_API_KEY",
        ) from e
