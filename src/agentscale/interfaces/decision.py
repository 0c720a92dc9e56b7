# src/agentscale/interfaces/decision.py
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from agentscale.domain.actions import Action
from agentscale.interfaces.session import Observation


@dataclass
class Decision:
    """
    Next step chosen by a decision strategy.

    Exactly one of ``action`` or ``complete`` is normally set. A decision
    with neither is treated as completion by the loop.
    """
    action: Action | None = None
    complete: bool = False
    summary: str | None = None
    continuation: Any = None  # opaque token handed back on the next call

    @property
    def is_terminal(self) -> bool:
        return self.complete or self.action is None


class IDecisionStrategy(ABC):
    """
    Interface for anything that picks the next action from an observation.

    Example:
        class ScriptedStrategy(IDecisionStrategy):
            async def decide(self, instructions, observation, continuation=None):
                return Decision(action=ClickAction(x=10, y=10))
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name used in logs and metrics."""
        pass

    @abstractmethod
    async def decide(
        self,
        instructions: str,
        observation: Observation,
        continuation: Any = None,
    ) -> Decision:
        """
        Ask for the next action or a completion signal.

        Args:
            instructions: Natural-language goal
            observation: Latest captured frame
            continuation: Token from the previous Decision, None on the first call

        Returns:
            Decision carrying an action, a completion, or neither

        Raises:
            DecisionError: Capability unreachable or response malformed
        """
        pass
