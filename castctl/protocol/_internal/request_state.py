# castctl/protocol/_internal/request_state.py
"""
Outstanding-request tracking and dead-link escalation.

State is one of:
  Idle(attempts_remaining)                   nothing awaiting a reply
  AwaitingResponse(since, attempts_remaining) a request went out at `since`
  LinkDead()                                 the attempt budget ran out

Transitions are plain functions so the policy can be exercised without a
transport; RequestTracker wraps them for the controller.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Idle:
    attempts_remaining: int


@dataclass(frozen=True)
class AwaitingResponse:
    since: float
    attempts_remaining: int


@dataclass(frozen=True)
class LinkDead:
    pass


RequestState = Union[Idle, AwaitingResponse, LinkDead]


def on_response(state: RequestState, budget: int) -> RequestState:
    """Any inbound frame counts as a reply and refills the budget."""
    return Idle(budget)


def on_sent(state: RequestState, now: float) -> RequestState:
    if isinstance(state, LinkDead):
        return state
    return AwaitingResponse(since=now, attempts_remaining=state.attempts_remaining)


def on_send_slot(state: RequestState, now: float, window_s: float) -> RequestState:
    """
    Decide whether a send may happen at `now`.

    Returns Idle when a send is allowed, the unchanged AwaitingResponse
    while the reply window is still open, or LinkDead once an expired
    request exhausts the budget.
    """
    if not isinstance(state, AwaitingResponse):
        return state
    if now - state.since <= window_s:
        return state

    remaining = state.attempts_remaining - 1
    if remaining <= 0:
        return LinkDead()
    return Idle(remaining)


class RequestTracker:
    def __init__(self, budget: int = 5, window_s: float = 0.5):
        self.budget = int(budget)
        self.window_s = float(window_s)
        self.state: RequestState = Idle(self.budget)

    @property
    def outstanding(self) -> bool:
        return isinstance(self.state, AwaitingResponse)

    @property
    def attempts_remaining(self) -> int:
        if isinstance(self.state, LinkDead):
            return 0
        return self.state.attempts_remaining

    def reset(self) -> None:
        self.state = Idle(self.budget)

    def response_received(self) -> None:
        self.state = on_response(self.state, self.budget)

    def sent(self, now: float) -> None:
        self.state = on_sent(self.state, now)

    def acquire_send_slot(self, now: float) -> RequestState:
        self.state = on_send_slot(self.state, now, self.window_s)
        return self.state
