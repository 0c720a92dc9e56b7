"""
Action variants the decision loop can ask for.

An action is a closed tagged variant keyed by ``type``. Anything the
decision capability returns with a type outside the known set becomes an
``UnrecognizedAction`` so the executor can log and skip it instead of
failing the run.

Wire shape (camelCase):
    {type, x?, y?, button?, text?, keys?, scrollX?, scrollY?, durationMs?}
"""
import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from agentscale.domain.exceptions import MalformedDecision


_BUTTON_ALIASES = {"wheel": "middle", "back": "left", "forward": "left"}


def _to_pixels(value: float) -> int:
    if not math.isfinite(value):
        raise ValueError(f"pixel value must be finite, got {value}")
    return int(value)


class BaseAction(BaseModel):
    """Base class for all actions."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    type: str = Field(..., description="Action kind")

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ClickAction(BaseAction):
    """Click at viewport coordinates."""
    type: Literal["click"] = "click"
    x: int | None = Field(None, description="Horizontal pixel coordinate")
    y: int | None = Field(None, description="Vertical pixel coordinate")
    button: Literal["left", "right", "middle"] = Field("left", description="Mouse button")

    @field_validator("x", "y", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value: Any) -> Any:
        # Models sometimes answer with floats or numeric strings
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            return _to_pixels(float(value))
        if isinstance(value, float):
            return _to_pixels(value)
        return value

    @field_validator("button", mode="before")
    @classmethod
    def _normalize_button(cls, value: Any) -> Any:
        if value is None:
            return "left"
        if isinstance(value, str):
            value = value.lower()
            return _BUTTON_ALIASES.get(value, value)
        return value


class TypeAction(BaseAction):
    """Type literal text at the current focus."""
    type: Literal["type"] = "type"
    text: str = Field(..., description="Text to inject")


class ScrollAction(BaseAction):
    """Scroll the page by a relative delta."""
    type: Literal["scroll"] = "scroll"
    scroll_x: int = Field(0, description="Horizontal delta in pixels")
    scroll_y: int = Field(0, description="Vertical delta in pixels")

    @field_validator("scroll_x", "scroll_y", mode="before")
    @classmethod
    def _default_delta(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, float):
            return _to_pixels(value)
        return value


class KeypressAction(BaseAction):
    """Press one or more named keys in sequence."""
    type: Literal["keypress"] = "keypress"
    keys: list[str] = Field(default_factory=list, description="Key names in press order")

    @field_validator("keys", mode="before")
    @classmethod
    def _wrap_single_key(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class WaitAction(BaseAction):
    """Pause for a duration; the executor's default applies when unset."""
    type: Literal["wait"] = "wait"
    duration_ms: int | None = Field(None, ge=0, description="Pause length in milliseconds")


class ScreenshotAction(BaseAction):
    """Advisory request for a fresh observation. Nothing is dispatched."""
    type: Literal["screenshot"] = "screenshot"


class UnrecognizedAction(BaseAction):
    """An action kind the executor does not know how to apply."""
    payload: dict[str, Any] = Field(default_factory=dict, description="Raw action payload")

    def to_wire(self) -> dict[str, Any]:
        return {**self.payload, "type": self.type}


Action = (
    ClickAction
    | TypeAction
    | ScrollAction
    | KeypressAction
    | WaitAction
    | ScreenshotAction
    | UnrecognizedAction
)

ACTION_TYPES: dict[str, type[BaseAction]] = {
    "click": ClickAction,
    "type": TypeAction,
    "scroll": ScrollAction,
    "keypress": KeypressAction,
    "wait": WaitAction,
    "screenshot": ScreenshotAction,
}

# Alternate spellings seen in decision responses
_FIELD_ALIASES = {
    "duration": "duration_ms",
    "ms": "duration_ms",
    "key": "keys",
}


def parse_action(payload: dict[str, Any]) -> Action:
    """
    Build an action variant from a decision payload.

    Accepts both snake_case (``scroll_x``) and camelCase (``scrollX``)
    field names, plus ``duration`` for waits.

    Args:
        payload: Raw action mapping from the decision capability

    Returns:
        The matching action variant, or UnrecognizedAction for unknown kinds

    Raises:
        MalformedDecision: If the payload has no type or a known kind fails validation
    """
    if not isinstance(payload, dict) or not payload.get("type"):
        raise MalformedDecision(
            "Action payload is missing a type",
            details={"payload": payload if isinstance(payload, dict) else repr(payload)},
        )

    action_type = str(payload["type"]).lower()
    model = ACTION_TYPES.get(action_type)
    if model is None:
        return UnrecognizedAction(type=action_type, payload=dict(payload))

    data = {}
    for key, value in payload.items():
        data[_FIELD_ALIASES.get(key, key)] = value
    data["type"] = action_type

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedDecision(
            f"Invalid '{action_type}' action: {e.error_count()} field error(s)",
            details={"payload": payload, "errors": [err["msg"] for err in e.errors()]},
        ) from e
