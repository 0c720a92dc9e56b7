# tests/unit/domain/test_actions.py
"""Unit tests for action parsing and wire serialization."""

import pytest

from agentscale.domain.actions import (
    ClickAction,
    KeypressAction,
    ScreenshotAction,
    ScrollAction,
    TypeAction,
    UnrecognizedAction,
    WaitAction,
    parse_action,
)
from agentscale.domain.exceptions import MalformedDecision


@pytest.mark.unit
class TestParseAction:
    """Test parse_action over decision payloads."""

    def test_click(self):
        action = parse_action({"type": "click", "x": 100, "y": 200, "button": "right"})

        assert isinstance(action, ClickAction)
        assert (action.x, action.y, action.button) == (100, 200, "right")

    def test_click_coordinates_coerced_from_float_and_string(self):
        action = parse_action({"type": "click", "x": 10.7, "y": "20"})

        assert (action.x, action.y) == (10, 20)

    def test_click_button_defaults_to_left(self):
        assert parse_action({"type": "click", "x": 1, "y": 1}).button == "left"
        assert parse_action({"type": "click", "x": 1, "y": 1, "button": None}).button == "left"

    def test_click_wheel_button_maps_to_middle(self):
        assert parse_action({"type": "click", "x": 1, "y": 1, "button": "wheel"}).button == "middle"

    def test_click_without_coordinates_is_allowed(self):
        action = parse_action({"type": "click"})

        assert action.x is None
        assert action.y is None

    def test_scroll_accepts_snake_and_camel_case(self):
        snake = parse_action({"type": "scroll", "scroll_x": 0, "scroll_y": 300})
        camel = parse_action({"type": "scroll", "scrollX": 5, "scrollY": -100})

        assert isinstance(snake, ScrollAction)
        assert snake.scroll_y == 300
        assert (camel.scroll_x, camel.scroll_y) == (5, -100)

    def test_scroll_missing_deltas_default_to_zero(self):
        action = parse_action({"type": "scroll", "scroll_y": None})

        assert (action.scroll_x, action.scroll_y) == (0, 0)

    def test_keypress_single_key_is_wrapped(self):
        action = parse_action({"type": "keypress", "key": "Enter"})

        assert isinstance(action, KeypressAction)
        assert action.keys == ["Enter"]

    def test_wait_duration_aliases(self):
        assert parse_action({"type": "wait", "duration": 1500}).duration_ms == 1500
        assert parse_action({"type": "wait", "ms": 10}).duration_ms == 10
        assert parse_action({"type": "wait"}).duration_ms is None

    def test_type_and_screenshot(self):
        assert isinstance(parse_action({"type": "type", "text": "hello"}), TypeAction)
        assert isinstance(parse_action({"type": "screenshot"}), ScreenshotAction)

    def test_type_is_case_insensitive(self):
        assert isinstance(parse_action({"type": "CLICK", "x": 1, "y": 2}), ClickAction)

    def test_unknown_type_becomes_unrecognized(self):
        action = parse_action({"type": "double_click", "x": 5, "y": 5})

        assert isinstance(action, UnrecognizedAction)
        assert action.type == "double_click"
        assert action.to_wire() == {"type": "double_click", "x": 5, "y": 5}

    def test_missing_type_raises(self):
        with pytest.raises(MalformedDecision):
            parse_action({"x": 1})

    def test_non_dict_raises(self):
        with pytest.raises(MalformedDecision):
            parse_action("click")

    def test_invalid_known_type_raises(self):
        with pytest.raises(MalformedDecision) as exc_info:
            parse_action({"type": "type"})

        assert exc_info.value.details["errors"]

    def test_negative_wait_raises(self):
        with pytest.raises(MalformedDecision):
            parse_action({"type": "wait", "duration_ms": -1})

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "click", "x": float("inf"), "y": 1},
            {"type": "click", "x": 1, "y": "nan"},
            {"type": "scroll", "scroll_y": float("-inf")},
        ],
    )
    def test_non_finite_pixels_raise(self, payload):
        with pytest.raises(MalformedDecision):
            parse_action(payload)


@pytest.mark.unit
class TestActionWireShape:
    """Test camelCase serialization."""

    def test_scroll_wire_uses_camel_case(self):
        wire = ScrollAction(scroll_x=0, scroll_y=300).to_wire()

        assert wire == {"type": "scroll", "scrollX": 0, "scrollY": 300}

    def test_unset_fields_are_omitted(self):
        assert WaitAction().to_wire() == {"type": "wait"}
        assert WaitAction(duration_ms=100).to_wire() == {"type": "wait", "durationMs": 100}

    def test_actions_are_immutable(self):
        action = ClickAction(x=1, y=2)

        with pytest.raises(Exception):
            action.x = 5
