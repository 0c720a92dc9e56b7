"""Browser automation sessions backed by Playwright."""
from agentscale.browser.playwright_session import PlaywrightSession, PlaywrightSessionLauncher

__all__ = ["PlaywrightSession", "PlaywrightSessionLauncher"]
