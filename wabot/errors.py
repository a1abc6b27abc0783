from typing import Optional


class PipelineError(Exception):
    """Base class for failures raised inside the message pipeline."""


class ValidationError(PipelineError):
    """The conversation store rejected the input; nothing was written."""


class MalformedEventError(PipelineError):
    """Inbound payload is missing required fields or is not a text message."""

    def __init__(self, reason: str, kind: Optional[str] = None):
        self.reason = reason
        self.kind = kind
        super().__init__(reason)


class IdentityError(PipelineError):
    """Store failure while resolving the sender's user or chat."""

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(f"Identity resolution failed at {step}: {cause}")


class PersistenceError(PipelineError):
    """Store failure while appending a message to a chat."""

    def __init__(self, role: str, cause: Exception):
        self.role = role
        self.cause = cause
        super().__init__(f"Failed to persist {role} message: {cause}")
