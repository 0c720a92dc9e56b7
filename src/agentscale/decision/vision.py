"""
Fallback decision strategy: single-shot chat completion with a screenshot.

Every call carries the full instructions and the current frame and asks
for a JSON object holding either an ``action`` or ``complete``.
"""
import json
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from agentscale.config.settings import Settings
from agentscale.decision.client import build_openai_client
from agentscale.decision.prompts import VISION_USER_PROMPT, vision_system_prompt
from agentscale.domain.actions import parse_action
from agentscale.domain.exceptions import DecisionError, DecisionUnavailable, MalformedDecision
from agentscale.interfaces.decision import Decision, IDecisionStrategy
from agentscale.interfaces.session import Observation


class VisionChatStrategy(IDecisionStrategy):
    """Decision strategy using a vision chat model in JSON mode."""

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self.model = settings.decision_fallback_model
        self.max_tokens = settings.decision_max_tokens
        self._client = client

    @property
    def name(self) -> str:
        return "vision_chat"

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = build_openai_client(self.settings)
        return self._client

    async def decide(
        self,
        instructions: str,
        observation: Observation,
        continuation: Any = None,
    ) -> Decision:
        messages = [
            {
                "role": "system",
                "content": vision_system_prompt(observation.viewport.width, observation.viewport.height),
            },
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": VISION_USER_PROMPT.format(instructions=instructions)},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:image/png;base64,{observation.image}"},
                    },
                ],
            },
        ]

        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={"type": "json_object"},
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise DecisionUnavailable(
                f"Vision request failed: {e}",
                details={"model": self.model, "error_type": type(e).__name__},
            ) from e

        if not response.choices:
            raise MalformedDecision("Vision response has no choices", details={"model": self.model})
        content = response.choices[0].message.content or ""

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise MalformedDecision(
                f"Vision response is not valid JSON: {e.msg}",
                details={"model": self.model},
            ) from e
        if not isinstance(data, dict):
            raise MalformedDecision("Vision response is not a JSON object", details={"model": self.model})

        if data.get("complete"):
            return Decision(complete=True, summary=data.get("summary"))

        action = data.get("action")
        if not action:
            return Decision(summary=data.get("summary"))
        try:
            return Decision(action=parse_action(action))
        except DecisionError:
            raise
        except Exception as e:
            raise MalformedDecision(
                f"Unreadable vision action: {e}",
                details={"model": self.model},
            ) from e
