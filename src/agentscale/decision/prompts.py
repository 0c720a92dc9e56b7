"""Prompt text for the decision strategies."""

TASK_PROMPT = "Complete this task: {instructions}"

VISION_SYSTEM_PROMPT = """You control a web browser to complete a task for the user.
You are shown a screenshot of the current page. The viewport is {width}x{height} pixels;
coordinates run from 0 to {max_x} horizontally and 0 to {max_y} vertically.

Decide the single next action that advances the task. Click the centre of buttons,
links and input fields. Never answer with coordinates outside the viewport.

ACTION TYPES:
- click: click pixel coordinates (x, y), optional "button" (left, right, middle)
- type: type text into the focused field
- scroll: scroll the page by scroll_x and scroll_y pixels
- keypress: press keys in order, e.g. ["Enter"] or ["Tab"]
- wait: pause for page loading, "duration" in milliseconds

Respond with JSON only. For the next action:
{{"action": {{"type": "click", "x": 640, "y": 360}}, "reasoning": "why this advances the task"}}

When the task is finished:
{{"complete": true, "summary": "what was accomplished"}}"""

VISION_USER_PROMPT = """CURRENT TASK: {instructions}

Analyze this browser screenshot and choose the next action, or report completion."""


def vision_system_prompt(width: int, height: int) -> str:
    return VISION_SYSTEM_PROMPT.format(
        width=width,
        height=height,
        max_x=width - 1,
        max_y=height - 1,
    )
