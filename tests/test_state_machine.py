import pytest

from wabot.services.state_machine import (
    TERMINAL_STAGES,
    InvalidTransitionError,
    PipelineStage,
    can_transition,
    is_terminal,
    transition,
)


class TestValidTransitions:
    def test_received_to_identity_resolved(self):
        result = transition(PipelineStage.RECEIVED, PipelineStage.IDENTITY_RESOLVED)
        assert result == PipelineStage.IDENTITY_RESOLVED

    def test_received_can_be_discarded(self):
        assert transition(PipelineStage.RECEIVED, PipelineStage.DISCARDED) == PipelineStage.DISCARDED

    def test_received_can_be_duplicate(self):
        assert transition(PipelineStage.RECEIVED, PipelineStage.DUPLICATE) == PipelineStage.DUPLICATE

    def test_reply_persisted_to_undelivered(self):
        result = transition(PipelineStage.REPLY_PERSISTED, PipelineStage.UNDELIVERED)
        assert result == PipelineStage.UNDELIVERED

    @pytest.mark.parametrize(
        "stage",
        [
            PipelineStage.RECEIVED,
            PipelineStage.IDENTITY_RESOLVED,
            PipelineStage.INBOUND_PERSISTED,
            PipelineStage.REPLY_GENERATED,
            PipelineStage.REPLY_PERSISTED,
        ],
    )
    def test_every_working_stage_can_fail(self, stage):
        assert transition(stage, PipelineStage.FAILED) == PipelineStage.FAILED


class TestInvalidTransitions:
    def test_cannot_dispatch_before_reply_persisted(self):
        with pytest.raises(InvalidTransitionError):
            transition(PipelineStage.REPLY_GENERATED, PipelineStage.DISPATCHED)

    def test_cannot_skip_inbound_persistence(self):
        with pytest.raises(InvalidTransitionError):
            transition(PipelineStage.IDENTITY_RESOLVED, PipelineStage.REPLY_GENERATED)

    def test_discard_only_before_identity(self):
        with pytest.raises(InvalidTransitionError):
            transition(PipelineStage.IDENTITY_RESOLVED, PipelineStage.DISCARDED)

    def test_same_stage(self):
        with pytest.raises(InvalidTransitionError):
            transition(PipelineStage.RECEIVED, PipelineStage.RECEIVED)

    def test_error_message_names_both_stages(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(PipelineStage.FAILED, PipelineStage.DISPATCHED)
        assert str(exc_info.value) == "Invalid transition: failed -> dispatched"

    @pytest.mark.parametrize("stage", sorted(TERMINAL_STAGES, key=lambda s: s.value))
    def test_terminal_stages_have_no_exit(self, stage):
        for target in PipelineStage:
            assert can_transition(stage, target) is False


class TestCanTransition:
    def test_valid_returns_true(self):
        assert can_transition(PipelineStage.INBOUND_PERSISTED, PipelineStage.REPLY_GENERATED) is True

    def test_invalid_returns_false(self):
        assert can_transition(PipelineStage.RECEIVED, PipelineStage.DISPATCHED) is False


class TestIsTerminal:
    def test_terminal(self):
        assert is_terminal(PipelineStage.DISPATCHED) is True
        assert is_terminal(PipelineStage.UNDELIVERED) is True

    def test_not_terminal(self):
        assert is_terminal(PipelineStage.REPLY_GENERATED) is False
