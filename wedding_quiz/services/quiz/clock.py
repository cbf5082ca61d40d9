"""Question countdown derived from the shared start timestamp.

Clients run the same arithmetic on their own tick; the server only uses it
for the ``time_remaining`` hint in snapshots and to sanity-check late answers.
"""

import time
from typing import Optional


def now() -> float:
    return time.time()


def window_ms(time_limit: int, question_time_limit: int) -> int:
    """Total countdown length: pre-roll display plus answer window."""
    return (int(time_limit or 0) + int(question_time_limit or 0)) * 1000


def elapsed_ms(question_start_time: Optional[float], current: float,
               is_paused: bool = False, paused_at: Optional[float] = None) -> int:
    if question_start_time is None:
        return 0
    # Paused games report the elapsed time at the moment of pausing
    reference = paused_at if (is_paused and paused_at is not None) else current
    return max(0, int((reference - question_start_time) * 1000))


def remaining_ms(question_start_time: Optional[float], time_limit: int, question_time_limit: int,
                 is_paused: bool = False, paused_at: Optional[float] = None,
                 current: Optional[float] = None) -> int:
    if question_start_time is None:
        return 0
    current = now() if current is None else current
    spent = elapsed_ms(question_start_time, current, is_paused, paused_at)
    return max(0, window_ms(time_limit, question_time_limit) - spent)


def answer_elapsed_ms(question_start_time: Optional[float], time_limit: int, current: float,
                      is_paused: bool = False, paused_at: Optional[float] = None) -> int:
    """Milliseconds since answers opened (negative during the pre-roll)."""
    if question_start_time is None:
        return 0
    return elapsed_ms(question_start_time, current, is_paused, paused_at) - int(time_limit or 0) * 1000


def state_remaining_ms(state, current: Optional[float] = None) -> int:
    question = state.current_question
    if question is None:
        return 0
    return remaining_ms(
        state.question_start_time,
        question.time_limit,
        state.question_time_limit,
        is_paused=state.is_paused,
        paused_at=state.paused_at,
        current=current,
    )
