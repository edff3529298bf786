from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from rls.core.result import Err, Ok, Result
from rls.services.release.errors import ReleaseError

S = TypeVar("S")


@dataclass(frozen=True, slots=True)
class StepAdvance[S]:
    session: S


@dataclass(frozen=True, slots=True)
class StepFinish:
    pass


@dataclass(frozen=True, slots=True)
class StepFailure[S]:
    """A handler failed.

    Attributes:
        session: Last session reached before the failing step
        step: Step whose handler failed
        error: What went wrong
    """

    session: S
    step: str
    error: ReleaseError


StepOutcome = StepAdvance[S] | StepFinish
StepHandler = Callable[[S], Result[StepOutcome[S], ReleaseError]]
OnEnter = Callable[[S], None]
GetStep = Callable[[S], str]


FINISH = StepFinish()


def advance[S](session: S) -> StepAdvance[S]:
    return StepAdvance(session=session)


def run_state_machine(
    *,
    initial_state: S,
    get_step: GetStep[S],
    handlers: Mapping[str, StepHandler[S]],
    on_enter: OnEnter[S],
) -> Result[S, StepFailure[S]]:
    """Drive handlers until one finishes or fails.

    The handler registered for the current step performs the work that leaves
    it, so steps are named after the state reached, not the work pending.
    on_enter sees every session, the initial one included. Returns the final
    session.
    """
    current = initial_state
    on_enter(current)

    while True:
        step = get_step(current)
        handler = handlers.get(step)
        if handler is None:
            error = ReleaseError(kind="invalid_state", message=f"unknown release step: {step}")
            return Err(StepFailure(session=current, step=step, error=error))

        outcome = handler(current)
        if isinstance(outcome, Err):
            return Err(StepFailure(session=current, step=step, error=outcome.error))

        if isinstance(outcome.value, StepFinish):
            return Ok(current)

        current = outcome.value.session
        on_enter(current)
