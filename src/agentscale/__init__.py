"""AgentScale - priority-scheduled browser agent orchestration service."""

__version__ = "0.1.0"
