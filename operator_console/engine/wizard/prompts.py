"""
Call catalog for the guided wizard and the hidden prompt it sends.

The prompt text is system-authored and only ever travels in a hidden turn,
so it is free to carry instructions the operator never sees.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple


class CallType(str, Enum):
    SINGLE_CALL = "single-call"
    CAMPAIGN = "campaign"


CALL_TYPE_LABELS = {
    CallType.SINGLE_CALL: "Single call to one contact",
    CallType.CAMPAIGN: "Campaign across many contacts",
}

CUSTOM_USE_CASE = "custom"

_BOTH = frozenset({CallType.SINGLE_CALL, CallType.CAMPAIGN})
_SINGLE = frozenset({CallType.SINGLE_CALL})


@dataclass(frozen=True)
class UseCase:
    id: str
    label: str
    brief: str
    call_types: FrozenSet[CallType]


USE_CASES: Tuple[UseCase, ...] = (
    UseCase(
        id="qualify-lead",
        label="Lead qualification",
        brief=(
            "Run a structured qualification conversation with a first-time contact. "
            "Find out whether our offer can genuinely help, clarify budget, decision timeline "
            "and decision-maker role, and agree on a concrete next step such as a meeting."
        ),
        call_types=_BOTH,
    ),
    UseCase(
        id="confirm-meeting",
        label="Meeting confirmation",
        brief=(
            "Confirm an existing appointment. Confirm time and place, briefly restate what the "
            "meeting will cover, address open questions, and politely offer to move the "
            "appointment if the contact is unsure."
        ),
        call_types=_SINGLE,
    ),
    UseCase(
        id="reschedule-meeting",
        label="Meeting reschedule",
        brief=(
            "Move an existing appointment. Give the reason for the change, offer two or three "
            "concrete alternative slots, stay apologetic and courteous, and clearly confirm the new slot."
        ),
        call_types=_SINGLE,
    ),
    UseCase(
        id="no-show-follow-up",
        label="No-show follow-up",
        brief=(
            "Re-engage a contact who missed an appointment. Ask politely what happened without "
            "reproach, rekindle interest in the value we offer, and book a new slot or define a clear next step."
        ),
        call_types=_BOTH,
    ),
    UseCase(
        id="reactivate-customer",
        label="Customer reactivation",
        brief=(
            "Win back an inactive existing customer. Ask why things went quiet, present what is new, "
            "offer concrete value, and agree on a next step such as a meeting, trial or quote."
        ),
        call_types=_BOTH,
    ),
    UseCase(
        id="post-demo-follow-up",
        label="Post-demo follow-up",
        brief=(
            "Follow up after a product demo or presentation. Collect feedback, clear open questions, "
            "refer to concrete points from the demo, and define next steps and the decision timeline."
        ),
        call_types=_SINGLE,
    ),
)

_BY_ID = {u.id: u for u in USE_CASES}


def find_use_case(use_case_id: str) -> Optional[UseCase]:
    return _BY_ID.get(use_case_id)


def use_cases_for(call_type: CallType) -> List[UseCase]:
    return [u for u in USE_CASES if call_type in u.call_types]


def build_generation_prompt(
    call_type: CallType,
    use_case_id: str,
    detail_text: str,
    *,
    custom_use_case: Optional[str] = None,
) -> str:
    if use_case_id == CUSTOM_USE_CASE:
        goal = (custom_use_case or "").strip()
        if not goal:
            raise ValueError("a custom use case needs a description")
        brief = f"Custom goal described by the operator: {goal}"
    else:
        use_case = find_use_case(use_case_id)
        if use_case is None:
            raise ValueError(f"unknown use case {use_case_id!r}")
        brief = use_case.brief

    lines = [
        "Write a ready-to-use phone call script for an AI voice agent.",
        f"Call type: {CALL_TYPE_LABELS[call_type]}.",
        f"Goal: {brief}",
        "Details from the operator:",
        detail_text.strip(),
        "",
        "Return only the script: opening, key questions, objection handling and a clear close.",
    ]
    if call_type == CallType.CAMPAIGN:
        lines.append("Keep contact-specific details as placeholders such as {{contact_name}}.")
    return "\n".join(lines)


__all__ = [
    "CallType",
    "CALL_TYPE_LABELS",
    "CUSTOM_USE_CASE",
    "UseCase",
    "USE_CASES",
    "find_use_case",
    "use_cases_for",
    "build_generation_prompt",
]
