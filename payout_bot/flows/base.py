from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from payout_bot.models.session import Session

ACTION_CONFIRM = "confirm"
ACTION_CANCEL = "cancel"
ACTION_CONTINUE = "continue"
ACTION_REENTER = "reenter"
ACTION_SKIP = "skip"
ACTION_USE_SUGGESTION = "use_suggestion"
ACTION_LARGE_CONFIRM = "large_confirm"

ACTIONS = {
    ACTION_CONFIRM,
    ACTION_CANCEL,
    ACTION_CONTINUE,
    ACTION_REENTER,
    ACTION_SKIP,
    ACTION_USE_SUGGESTION,
    ACTION_LARGE_CONFIRM,
}

# Typed words that behave like the matching button.
TEXT_ACTIONS = {
    "confirm": ACTION_CONFIRM,
    "cancel": ACTION_CANCEL,
}

Button = Tuple[str, str]


@dataclass(slots=True)
class FlowReply:
    text: str
    buttons: List[Button] = field(default_factory=list)
    step: Optional[str] = None
    finished: bool = False


@dataclass(slots=True)
class FlowContext:
    session: Session
    text: Optional[str] = None
    action: Optional[str] = None

    @property
    def user_id(self) -> int:
        return self.session.user_id

    @property
    def token(self) -> str:
        return self.session.token or ""

    @property
    def scratch(self) -> Dict[str, Any]:
        return self.session.scratch

    @property
    def input(self) -> str:
        return (self.text or "").strip()

    def move(self, state: Any) -> None:
        self.session.current_step = state.state if state is not None else None

    def reset(self) -> None:
        self.session.current_step = None
        self.session.scratch = {}


class FlowAbort(Exception):
    """Stops the current flow with an already rendered explanation."""

    def __init__(self, text: str) -> None:
        super().__init__(text)
        self.text = text


def normalize_action(text: Optional[str], action: Optional[str]) -> Optional[str]:
    if action:
        return action if action in ACTIONS else None
    if text is None:
        return None
    return TEXT_ACTIONS.get(text.strip().lower())


def parse_selection(text: Optional[str], count: int) -> Optional[int]:
    """Zero-based index for a 1-based menu choice, or None when out of range."""
    raw = (text or "").strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    choice = int(raw)
    if choice < 1 or choice > count:
        return None
    return choice - 1
