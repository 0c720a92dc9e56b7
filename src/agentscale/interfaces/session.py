# src/agentscale/interfaces/session.py
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class Viewport:
    """Rendered area of an automation session, in pixels."""
    width: int
    height: int

    def clamp(self, x: int, y: int) -> tuple[int, int]:
        """Nearest in-bounds pixel to (x, y)."""
        return (
            max(0, min(x, self.width - 1)),
            max(0, min(y, self.height - 1)),
        )


@dataclass(frozen=True)
class Observation:
    """A captured frame of the session."""
    ref: str
    image: str  # base64 PNG
    viewport: Viewport
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# Input primitives dispatched to a session. The action executor is the only
# producer; sessions translate them into the automation library's calls.

@dataclass(frozen=True)
class MouseClick:
    x: int
    y: int
    button: str = "left"
    delay_ms: int = 0


@dataclass(frozen=True)
class TypeText:
    text: str
    delay_ms: int = 0


@dataclass(frozen=True)
class Scroll:
    delta_x: int
    delta_y: int


@dataclass(frozen=True)
class KeyPress:
    key: str


@dataclass(frozen=True)
class Wait:
    duration_ms: int


Primitive = MouseClick | TypeText | Scroll | KeyPress | Wait


class IAutomationSession(ABC):
    """One live automation session (a browser page)."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique session identifier."""
        pass

    @property
    @abstractmethod
    def viewport(self) -> Viewport:
        """Current viewport bounds."""
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Whether close() has run."""
        pass

    @abstractmethod
    async def navigate(self, address: str) -> None:
        """Load ``address``. Raises SessionError on failure."""
        pass

    @abstractmethod
    async def capture(self) -> Observation:
        """Snapshot the rendered viewport. Raises SessionError on failure."""
        pass

    @abstractmethod
    async def dispatch(self, primitive: Primitive) -> None:
        """Apply one input primitive. Raises SessionError when closed."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release all resources. Safe to call more than once."""
        pass


class ISessionLauncher(ABC):
    """Creates fresh automation sessions."""

    @abstractmethod
    async def launch(self) -> IAutomationSession:
        """Launch a new, unshared session. Raises SessionError on failure."""
        pass

    async def shutdown(self) -> None:
        """Optional: release launcher-wide resources."""
        pass
