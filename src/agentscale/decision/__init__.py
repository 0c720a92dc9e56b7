"""Decision strategies backed by the OpenAI API."""
from agentscale.decision.client import build_openai_client
from agentscale.decision.computer_use import ComputerUseContinuation, ComputerUseStrategy
from agentscale.decision.vision import VisionChatStrategy

__all__ = [
    "build_openai_client",
    "ComputerUseContinuation",
    "ComputerUseStrategy",
    "VisionChatStrategy",
]
