from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class WizardStep(str, Enum):
    TYPE = "type"
    USECASE = "usecase"
    INPUT = "input"
    GENERATING = "generating"
    RESULT = "result"


FORWARD: Dict[WizardStep, WizardStep] = {
    WizardStep.TYPE: WizardStep.USECASE,
    WizardStep.USECASE: WizardStep.INPUT,
    WizardStep.INPUT: WizardStep.GENERATING,
    WizardStep.GENERATING: WizardStep.RESULT,
}

# generating is left only by its turn settling or failing
BACK: Dict[WizardStep, WizardStep] = {
    WizardStep.USECASE: WizardStep.TYPE,
    WizardStep.INPUT: WizardStep.USECASE,
    WizardStep.RESULT: WizardStep.INPUT,
}


@dataclass
class WizardState:
    """Fields collected so far. Going back keeps them; only reset drops the state."""

    step: WizardStep = WizardStep.TYPE
    call_type: Optional[str] = None
    use_case: Optional[str] = None
    custom_use_case: Optional[str] = None
    draft_text: str = ""
    generated_text: str = ""


@dataclass(frozen=True)
class WizardSnapshot:
    step: WizardStep
    call_type: Optional[str]
    use_case: Optional[str]
    draft_text: str
    generated_text: str

    @classmethod
    def of(cls, state: WizardState) -> "WizardSnapshot":
        return cls(
            step=state.step,
            call_type=state.call_type,
            use_case=state.use_case,
            draft_text=state.draft_text,
            generated_text=state.generated_text,
        )


__all__ = ["WizardStep", "FORWARD", "BACK", "WizardState", "WizardSnapshot"]
