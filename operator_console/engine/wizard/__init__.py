from operator_console.engine.wizard.state import BACK, FORWARD, WizardSnapshot, WizardState, WizardStep
from operator_console.engine.wizard.prompts import (
    CALL_TYPE_LABELS,
    CUSTOM_USE_CASE,
    USE_CASES,
    CallType,
    UseCase,
    build_generation_prompt,
    find_use_case,
    use_cases_for,
)
from operator_console.engine.wizard.wizard import GuidedCallWizard, HandOff

__all__ = [
    "BACK",
    "FORWARD",
    "WizardSnapshot",
    "WizardState",
    "WizardStep",
    "CALL_TYPE_LABELS",
    "CUSTOM_USE_CASE",
    "USE_CASES",
    "CallType",
    "UseCase",
    "build_generation_prompt",
    "find_use_case",
    "use_cases_for",
    "GuidedCallWizard",
    "HandOff",
]
