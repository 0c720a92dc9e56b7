"""
Action executor.

Maps one abstract action onto session input primitives. Click coordinates
are clamped into the viewport, unknown kinds are logged and skipped, and a
settle delay follows every action.
"""
import asyncio

from agentscale.config.settings import Settings
from agentscale.domain.actions import (
    Action,
    ClickAction,
    KeypressAction,
    ScreenshotAction,
    ScrollAction,
    TypeAction,
    UnrecognizedAction,
    WaitAction,
)
from agentscale.domain.exceptions import ActionExecutionError
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.infrastructure.observability.metrics import ACTIONS_TOTAL
from agentscale.interfaces.session import (
    IAutomationSession,
    KeyPress,
    MouseClick,
    Scroll,
    TypeText,
    Wait,
)

logger = get_logger(__name__)

APPLIED = "applied"
SKIPPED = "skipped"

# Decision capabilities spell keys many ways; sessions expect these names.
KEY_NAMES = {
    "enter": "Enter",
    "return": "Enter",
    "tab": "Tab",
    "space": "Space",
    " ": "Space",
    "esc": "Escape",
    "escape": "Escape",
    "backspace": "Backspace",
    "delete": "Delete",
    "del": "Delete",
    "ctrl": "Control",
    "control": "Control",
    "alt": "Alt",
    "option": "Alt",
    "shift": "Shift",
    "cmd": "Meta",
    "meta": "Meta",
    "super": "Meta",
    "up": "ArrowUp",
    "arrowup": "ArrowUp",
    "down": "ArrowDown",
    "arrowdown": "ArrowDown",
    "left": "ArrowLeft",
    "arrowleft": "ArrowLeft",
    "right": "ArrowRight",
    "arrowright": "ArrowRight",
    "pageup": "PageUp",
    "pagedown": "PageDown",
    "home": "Home",
    "end": "End",
}


def normalize_key(key: str) -> str:
    """Map a key name to its canonical spelling, passing unknown names through."""
    return KEY_NAMES.get(key.strip().lower(), key)


class ActionExecutor:
    """Applies actions to a live automation session."""

    def __init__(
        self,
        settle_delay_ms: int = 500,
        click_delay_ms: int = 100,
        type_delay_ms: int = 50,
        keypress_delay_ms: int = 100,
        default_wait_ms: int = 2000,
    ):
        self.settle_delay_ms = settle_delay_ms
        self.click_delay_ms = click_delay_ms
        self.type_delay_ms = type_delay_ms
        self.keypress_delay_ms = keypress_delay_ms
        self.default_wait_ms = default_wait_ms

    @classmethod
    def from_settings(cls, settings: Settings) -> "ActionExecutor":
        return cls(
            settle_delay_ms=settings.action_settle_delay_ms,
            click_delay_ms=settings.click_delay_ms,
            type_delay_ms=settings.type_delay_ms,
            keypress_delay_ms=settings.keypress_delay_ms,
            default_wait_ms=settings.default_wait_ms,
        )

    async def apply(self, session: IAutomationSession, action: Action) -> str:
        """
        Apply one action, then wait for the page to settle.

        Args:
            session: Live session to drive
            action: Action variant to apply

        Returns:
            APPLIED, or SKIPPED for unknown kinds and clicks without coordinates

        Raises:
            ActionExecutionError: If the session rejects a primitive
        """
        try:
            outcome = await self._dispatch(session, action)
        except ActionExecutionError:
            ACTIONS_TOTAL.labels(action_type=action.type, status="error").inc()
            raise
        except Exception as e:
            ACTIONS_TOTAL.labels(action_type=action.type, status="error").inc()
            raise ActionExecutionError(
                f"Failed to apply '{action.type}' action: {e}",
                details={"action": action.to_wire(), "error_type": type(e).__name__},
            ) from e

        ACTIONS_TOTAL.labels(action_type=action.type, status=outcome).inc()
        await self._sleep(self.settle_delay_ms)
        return outcome

    async def _dispatch(self, session: IAutomationSession, action: Action) -> str:
        if isinstance(action, ClickAction):
            if action.x is None or action.y is None:
                logger.warning("click_without_coordinates", action=action.to_wire())
                return SKIPPED
            x, y = session.viewport.clamp(action.x, action.y)
            if (x, y) != (action.x, action.y):
                logger.info(
                    "click_clamped",
                    requested_x=action.x,
                    requested_y=action.y,
                    x=x,
                    y=y,
                )
            await session.dispatch(
                MouseClick(x=x, y=y, button=action.button, delay_ms=self.click_delay_ms)
            )

        elif isinstance(action, TypeAction):
            await session.dispatch(TypeText(text=action.text, delay_ms=self.type_delay_ms))

        elif isinstance(action, ScrollAction):
            await session.dispatch(Scroll(delta_x=action.scroll_x, delta_y=action.scroll_y))

        elif isinstance(action, KeypressAction):
            for key in action.keys:
                await session.dispatch(KeyPress(key=normalize_key(key)))
                await self._sleep(self.keypress_delay_ms)

        elif isinstance(action, WaitAction):
            duration = action.duration_ms if action.duration_ms is not None else self.default_wait_ms
            await session.dispatch(Wait(duration_ms=duration))

        elif isinstance(action, ScreenshotAction):
            # Observation is captured after every action anyway
            pass

        elif isinstance(action, UnrecognizedAction):
            logger.warning("unknown_action_skipped", action_type=action.type)
            return SKIPPED

        else:
            logger.warning("unknown_action_skipped", action_type=getattr(action, "type", None))
            return SKIPPED

        return APPLIED

    @staticmethod
    async def _sleep(delay_ms: int) -> None:
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
