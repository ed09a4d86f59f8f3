from operator_console.engine.ux.state import (
    GENERIC_FAILURE_DESCRIPTION,
    GENERIC_FAILURE_TITLE,
    UPGRADE_TITLE,
    NoticeAction,
    UserNotice,
    UXState,
    build_notice,
    decide_ux_state,
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
