"""Exceptions raised by agent runs.

Per-turn problems (missing or malformed tool output) are never raised; they
are logged and the turn contributes nothing. Everything here aborts a run.
"""


class AgentError(Exception):
    """Base class for errors that abort an agent run."""


class InvalidInputError(AgentError, ValueError):
    """The caller supplied input the engine refuses to run with."""


class ToolRegistrationError(AgentError):
    """The chat model could not be bound to the engine's tool."""


class ModelInvocationError(AgentError):
    """The chat model call itself failed (transport, auth, timeout, ...)."""

    def __init__(self, agent: str, cursor: int, cause: BaseException):
        super().__init__(f"{agent}: model call failed at item {cursor}: {cause}")
        self.agent = agent
        self.cursor = cursor
