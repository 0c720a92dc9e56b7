"""
Primary decision strategy: OpenAI computer-use over the Responses API.

Multi-turn. After the first request the strategy only sends the latest
screenshot, chained to the previous response through
``previous_response_id``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from agentscale.config.settings import Settings
from agentscale.decision.client import build_openai_client
from agentscale.decision.prompts import TASK_PROMPT
from agentscale.domain.actions import parse_action
from agentscale.domain.exceptions import DecisionError, DecisionUnavailable, MalformedDecision
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.interfaces.decision import Decision, IDecisionStrategy
from agentscale.interfaces.session import Observation

logger = get_logger(__name__)


@dataclass(frozen=True)
class ComputerUseContinuation:
    """What the next request needs to continue the conversation."""
    response_id: str
    call_id: str
    pending_safety_checks: list[dict[str, Any]] = field(default_factory=list)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _as_dict(value: Any) -> Any:
    if value is None or isinstance(value, dict):
        return value
    if hasattr(value, "model_dump"):
        return value.model_dump(exclude_none=True)
    return dict(vars(value))


class ComputerUseStrategy(IDecisionStrategy):
    """Decision strategy using the ``computer-use-preview`` model."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.settings = settings
        self.model = settings.decision_primary_model
        self._client = client

    @property
    def name(self) -> str:
        return "computer_use"

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = build_openai_client(self.settings)
        return self._client

    def _tools(self, observation: Observation) -> list[dict[str, Any]]:
        return [{
            "type": "computer_use_preview",
            "display_width": observation.viewport.width,
            "display_height": observation.viewport.height,
            "environment": "browser",
        }]

    @staticmethod
    def _image_url(observation: Observation) -> str:
        return f"data:image/png;base64,{observation.image}"

    async def decide(
        self,
        instructions: str,
        observation: Observation,
        continuation: Any = None,
    ) -> Decision:
        request: dict[str, Any] = {
            "model": self.model,
            "tools": self._tools(observation),
            "truncation": "auto",
        }

        if isinstance(continuation, ComputerUseContinuation):
            call_output: dict[str, Any] = {
                "type": "computer_call_output",
                "call_id": continuation.call_id,
                "output": {
                    "type": "computer_screenshot",
                    "image_url": self._image_url(observation),
                },
            }
            if continuation.pending_safety_checks:
                call_output["acknowledged_safety_checks"] = continuation.pending_safety_checks
            request["previous_response_id"] = continuation.response_id
            request["input"] = [call_output]
        else:
            request["input"] = [{
                "role": "user",
                "content": [
                    {"type": "input_text", "text": TASK_PROMPT.format(instructions=instructions)},
                    {"type": "input_image", "image_url": self._image_url(observation)},
                ],
            }]
            request["reasoning"] = {"summary": "concise"}

        client = self._get_client()
        try:
            response = await client.responses.create(**request)
        except OpenAIError as e:
            raise DecisionUnavailable(
                f"Computer use request failed: {e}",
                details={"model": self.model, "error_type": type(e).__name__},
            ) from e

        try:
            return self._to_decision(response)
        except DecisionError:
            raise
        except Exception as e:
            raise MalformedDecision(
                f"Unreadable computer use response: {e}",
                details={"model": self.model},
            ) from e

    def _to_decision(self, response: Any) -> Decision:
        output = _field(response, "output") or []
        calls = [item for item in output if _field(item, "type") == "computer_call"]

        if not calls:
            summary = _field(response, "output_text") or None
            logger.info("computer_use_complete", response_id=_field(response, "id"))
            return Decision(complete=True, summary=summary)

        call = calls[0]
        action = _as_dict(_field(call, "action"))
        if not action:
            logger.info("computer_use_call_without_action", call_id=_field(call, "call_id"))
            return Decision()

        safety_checks = [_as_dict(check) for check in (_field(call, "pending_safety_checks") or [])]
        if safety_checks:
            logger.warning(
                "computer_use_safety_checks_acknowledged",
                codes=[check.get("code") for check in safety_checks],
            )

        return Decision(
            action=parse_action(action),
            continuation=ComputerUseContinuation(
                response_id=_field(response, "id"),
                call_id=_field(call, "call_id"),
                pending_safety_checks=safety_checks,
            ),
        )
