from wabot.services.conversation_service import (
    append_message,
    claim_event,
    get_history,
    get_or_create_chat,
    get_or_create_user,
)
from wabot.services.identity_service import Identity, resolve_identity
from wabot.services.state_machine import (
    InvalidTransitionError,
    PipelineStage,
    can_transition,
    is_terminal,
    transition,
)
