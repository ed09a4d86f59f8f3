from __future__ import annotations


class EngineInvariantError(RuntimeError):
    """A caller broke one of the engine's invariants. Never recovered internally."""


class TurnInFlightError(EngineInvariantError):
    """A turn was submitted, or the session switched, while another turn is active."""


class SessionConflictError(EngineInvariantError):
    """A second, different session id was adopted while one is already active."""


class InvalidTransitionError(EngineInvariantError):
    """A state machine was asked to make a move its transition table forbids."""


class WizardTransitionError(EngineInvariantError):
    """A wizard action was invoked from a step that does not allow it."""


__all__ = [
    "EngineInvariantError",
    "TurnInFlightError",
    "SessionConflictError",
    "InvalidTransitionError",
    "WizardTransitionError",
]
