from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

from operator_console.engine.conversation.engine import ConversationEngine, TurnOutcome
from operator_console.engine.errors import WizardTransitionError
from operator_console.engine.failures import TurnFailure
from operator_console.engine.ux import UserNotice
from operator_console.engine.wizard.prompts import (
    CUSTOM_USE_CASE,
    CallType,
    UseCase,
    build_generation_prompt,
    find_use_case,
    use_cases_for,
)
from operator_console.engine.wizard.state import BACK, FORWARD, WizardSnapshot, WizardState, WizardStep

logger = logging.getLogger(__name__)

HandOff = Callable[[str], Union[None, Awaitable[None]]]


class GuidedCallWizard:
    """Scripted sub-conversation that turns a few choices into a generated call script.

    The ``generating`` step issues exactly one hidden turn through the engine;
    the wizard's prompt never shows up in the visible transcript.
    """

    def __init__(self, engine: ConversationEngine, handoff: Optional[HandOff] = None) -> None:
        self._engine = engine
        self._handoff = handoff
        self._state: Optional[WizardState] = None
        self._last_failure: Optional[TurnFailure] = None
        self._notice: Optional[UserNotice] = None

    @property
    def is_open(self) -> bool:
        return self._state is not None

    @property
    def step(self) -> Optional[WizardStep]:
        return self._state.step if self._state is not None else None

    @property
    def last_failure(self) -> Optional[TurnFailure]:
        return self._last_failure

    @property
    def notice(self) -> Optional[UserNotice]:
        return self._notice

    def snapshot(self) -> Optional[WizardSnapshot]:
        return WizardSnapshot.of(self._state) if self._state is not None else None

    def _require(self, *steps: WizardStep) -> WizardState:
        state = self._state
        if state is None:
            raise WizardTransitionError("wizard is not open")
        if state.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise WizardTransitionError(f"wizard is at {state.step.value}, expected {allowed}")
        return state

    def _enter(self, state: WizardState, step: WizardStep) -> None:
        logger.info("[WIZARD] step", extra={"from_step": state.step.value, "to_step": step.value})
        state.step = step

    # ------------------------
    # Lifecycle
    # ------------------------
    def open(self) -> WizardSnapshot:
        if self._state is not None and self._state.step == WizardStep.GENERATING:
            raise WizardTransitionError("cannot reopen the wizard while a script is generating")
        self._state = WizardState()
        self._last_failure = None
        self._notice = None
        return WizardSnapshot.of(self._state)

    def reset(self) -> None:
        if self._state is not None and self._state.step == WizardStep.GENERATING:
            raise WizardTransitionError("cannot close the wizard while a script is generating")
        self._state = None
        self._last_failure = None
        self._notice = None

    # ------------------------
    # Steps
    # ------------------------
    def call_types(self) -> List[CallType]:
        return list(CallType)

    def use_cases(self) -> List[UseCase]:
        state = self._require(WizardStep.USECASE, WizardStep.INPUT, WizardStep.RESULT)
        return use_cases_for(CallType(state.call_type))

    def choose_call_type(self, call_type: Union[CallType, str]) -> WizardSnapshot:
        state = self._require(WizardStep.TYPE)
        chosen = CallType(call_type)
        if state.use_case and state.use_case != CUSTOM_USE_CASE:
            kept = find_use_case(state.use_case)
            if kept is None or chosen not in kept.call_types:
                state.use_case = None
        state.call_type = chosen.value
        self._enter(state, FORWARD[state.step])
        return WizardSnapshot.of(state)

    def choose_use_case(self, use_case: Optional[str] = None, *, custom_text: Optional[str] = None) -> WizardSnapshot:
        state = self._require(WizardStep.USECASE)
        if custom_text is not None and custom_text.strip():
            state.use_case = CUSTOM_USE_CASE
            state.custom_use_case = custom_text.strip()
        elif use_case:
            found = find_use_case(use_case)
            if found is None or CallType(state.call_type) not in found.call_types:
                raise ValueError(f"use case {use_case!r} is not offered for {state.call_type}")
            state.use_case = found.id
        else:
            raise ValueError("choose a use case or describe a custom one")
        self._enter(state, FORWARD[state.step])
        return WizardSnapshot.of(state)

    def set_draft(self, text: str) -> WizardSnapshot:
        state = self._require(WizardStep.INPUT)
        limit = self._engine.settings.max_user_text_chars
        if limit and len(text) > limit:
            raise ValueError(f"details exceed {limit} characters")
        state.draft_text = text
        return WizardSnapshot.of(state)

    async def confirm(self, text: Optional[str] = None) -> TurnOutcome:
        state = self._require(WizardStep.INPUT)
        if text is not None:
            self.set_draft(text)
        if not state.draft_text.strip():
            raise ValueError("add some details before generating")

        prompt = build_generation_prompt(
            CallType(state.call_type),
            state.use_case or "",
            state.draft_text,
            custom_use_case=state.custom_use_case,
        )
        self._last_failure = None
        self._notice = None
        self._enter(state, FORWARD[state.step])
        try:
            outcome = await self._engine.submit_turn(
                prompt,
                hidden=True,
                wizard_step=WizardStep.GENERATING.value,
            )
        except (Exception, asyncio.CancelledError):
            self._enter(state, WizardStep.INPUT)
            raise

        if outcome.settled:
            state.generated_text = outcome.assistant_text
            self._enter(state, FORWARD[state.step])
        else:
            self._last_failure = outcome.failure
            self._notice = outcome.notice
            logger.info(
                "[WIZARD] generation failed",
                extra={"failure_kind": outcome.failure.kind.value if outcome.failure else None},
            )
            self._enter(state, WizardStep.INPUT)
        return outcome

    def back(self) -> WizardSnapshot:
        state = self._require(*BACK)
        self._enter(state, BACK[state.step])
        return WizardSnapshot.of(state)

    async def hand_off(self) -> str:
        state = self._require(WizardStep.RESULT)
        if self._handoff is None:
            raise WizardTransitionError("no hand-off target configured")
        result = self._handoff(state.generated_text)
        if inspect.isawaitable(result):
            await result
        logger.info("[WIZARD] handed off", extra={"script_len": len(state.generated_text)})
        return state.generated_text


__all__ = ["GuidedCallWizard", "HandOff"]
