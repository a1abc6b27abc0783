from enum import Enum


class PipelineStage(str, Enum):
    RECEIVED = "received"
    IDENTITY_RESOLVED = "identity_resolved"
    INBOUND_PERSISTED = "inbound_persisted"
    REPLY_GENERATED = "reply_generated"
    REPLY_PERSISTED = "reply_persisted"
    DISPATCHED = "dispatched"
    # terminal exits
    DISCARDED = "discarded"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    UNDELIVERED = "undelivered"


VALID_TRANSITIONS = {
    PipelineStage.RECEIVED: [
        PipelineStage.IDENTITY_RESOLVED,
        PipelineStage.DISCARDED,
        PipelineStage.DUPLICATE,
        PipelineStage.FAILED,
    ],
    PipelineStage.IDENTITY_RESOLVED: [PipelineStage.INBOUND_PERSISTED, PipelineStage.FAILED],
    PipelineStage.INBOUND_PERSISTED: [PipelineStage.REPLY_GENERATED, PipelineStage.FAILED],
    PipelineStage.REPLY_GENERATED: [PipelineStage.REPLY_PERSISTED, PipelineStage.FAILED],
    PipelineStage.REPLY_PERSISTED: [PipelineStage.DISPATCHED, PipelineStage.UNDELIVERED, PipelineStage.FAILED],
}

TERMINAL_STAGES = frozenset(
    {
        PipelineStage.DISPATCHED,
        PipelineStage.DISCARDED,
        PipelineStage.DUPLICATE,
        PipelineStage.FAILED,
        PipelineStage.UNDELIVERED,
    }
)


class InvalidTransitionError(Exception):
    def __init__(self, from_stage: PipelineStage, to_stage: PipelineStage):
        self.from_stage = from_stage
        self.to_stage = to_stage
        super().__init__(f"Invalid transition: {from_stage.value} -> {to_stage.value}")


def can_transition(from_stage: PipelineStage, to_stage: PipelineStage) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_stage, [])
    return to_stage in allowed


def transition(from_stage: PipelineStage, to_stage: PipelineStage) -> PipelineStage:
    """Perform stage transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_stage, to_stage):
        raise InvalidTransitionError(from_stage, to_stage)
    return to_stage


def is_terminal(stage: PipelineStage) -> bool:
    return stage in TERMINAL_STAGES
