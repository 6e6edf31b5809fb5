"""Delivery negotiation state machine, guards and per-viewer projector."""

from scheduling.state_machine.machine import (
    DeliveryStateMachine,
    NegotiationRules,
    NotificationPlan,
    TransitionOutcome,
)
from scheduling.state_machine.transitions import (
    ACTION_ORDER,
    TERMINAL_STATES,
    TRANSITIONS,
    Transition,
)

__all__ = [
    "ACTION_ORDER",
    "DeliveryStateMachine",
    "NegotiationRules",
    "NotificationPlan",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "Transition",
    "TransitionOutcome",
]
