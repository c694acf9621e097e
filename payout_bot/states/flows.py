from __future__ import annotations

from typing import Dict, Optional

from aiogram.fsm.state import State, StatesGroup


class SendStates(StatesGroup):
    EMAIL_RECIPIENT = State()
    WALLET_RECIPIENT = State()
    NETWORK = State()
    ADDRESS_WARNING = State()
    TOKEN = State()
    AMOUNT = State()
    LARGE_AMOUNT = State()
    NOTE = State()
    CONFIRM = State()


class WithdrawStates(StatesGroup):
    BANK_ACCOUNT = State()
    NETWORK = State()
    TOKEN = State()
    AMOUNT = State()
    LARGE_AMOUNT = State()
    CONFIRM = State()


class BatchStates(StatesGroup):
    ENTRIES = State()
    DUPLICATE = State()
    CONFIRM = State()


class LoginStates(StatesGroup):
    EMAIL = State()
    OTP = State()


class WalletStates(StatesGroup):
    DEFAULT_SELECT = State()
    GENERATE_NETWORK = State()


FLOW_GROUPS = {
    "send": SendStates,
    "withdraw": WithdrawStates,
    "batch": BatchStates,
    "login": LoginStates,
    "wallet": WalletStates,
}

STATES_BY_TAG: Dict[str, State] = {
    state.state: state for group in FLOW_GROUPS.values() for state in group.__all_states__
}


def resolve_state(tag: Optional[str]) -> Optional[State]:
    if not tag:
        return None
    return STATES_BY_TAG.get(tag)


def flow_for_state(state: State) -> Optional[str]:
    for name, group in FLOW_GROUPS.items():
        if state in group.__all_states__:
            return name
    return None
