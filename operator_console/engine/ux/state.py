from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from operator_console.engine.failures import TurnFailure, TurnFailureKind
from operator_console.engine.streaming.errors import RejectionKind


class UXState(str, Enum):
    OK = "OK"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    BLOCKED = "BLOCKED"
    DEGRADED = "DEGRADED"
    ERROR = "ERROR"


class NoticeAction(str, Enum):
    UPGRADE = "upgrade"
    RESUBMIT = "resubmit"


@dataclass(frozen=True)
class UserNotice:
    ux_state: UXState
    title: str
    description: str
    action: NoticeAction

    @property
    def is_upgrade_prompt(self) -> bool:
        return self.action == NoticeAction.UPGRADE


GENERIC_FAILURE_TITLE = "Message could not be sent"
GENERIC_FAILURE_DESCRIPTION = "Something went wrong while the reply was streaming. Please send it again."
UPGRADE_TITLE = "Message limit reached"


def decide_ux_state(failure: Optional[TurnFailure]) -> UXState:
    if failure is None:
        return UXState.OK

    if failure.kind == TurnFailureKind.QUOTA_EXCEEDED:
        return UXState.QUOTA_EXCEEDED

    if failure.rejection_kind == RejectionKind.AUTH:
        return UXState.BLOCKED

    if failure.rejection_kind == RejectionKind.NETWORK or failure.kind == TurnFailureKind.TIMEOUT:
        return UXState.DEGRADED

    return UXState.ERROR


def build_notice(failure: TurnFailure) -> UserNotice:
    state = decide_ux_state(failure)
    if state == UXState.QUOTA_EXCEEDED:
        return UserNotice(
            ux_state=state,
            title=UPGRADE_TITLE,
            description=failure.description,
            action=NoticeAction.UPGRADE,
        )
    # stream errors carry backend text that is not meant for end users
    description = failure.description if failure.kind == TurnFailureKind.REJECTED else GENERIC_FAILURE_DESCRIPTION
    return UserNotice(
        ux_state=state,
        title=GENERIC_FAILURE_TITLE,
        description=description,
        action=NoticeAction.RESUBMIT,
    )


__all__ = [
    "UXState",
    "NoticeAction",
    "UserNotice",
    "decide_ux_state",
    "build_notice",
    "GENERIC_FAILURE_TITLE",
    "GENERIC_FAILURE_DESCRIPTION",
    "UPGRADE_TITLE",
]
