"""
Placeholder resolution for execution plans.

The model writes ``generated-id`` where a create step needs a fresh record id
and ``user-id`` where a later step refers to the user created earlier in the
same plan. Resolution runs once over the whole plan before execution, walking
the steps in execution order and threading the session user id through an
explicit accumulator.
"""
from __future__ import annotations

import logging
import random
import time
from typing import Callable, Dict, List, NamedTuple, Optional

from .config import CREATE_OPERATIONS, GENERATED_ID_TOKEN, USER_ID_TOKEN
from .decoder import decode_step
from .schemas import ExecutionPlan, Step

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_random_id() -> str:
    """Base-36 millisecond timestamp plus a six character base-36 suffix."""
    timestamp = to_base36(int(time.time() * 1000))
    suffix = "".join(random.choice(_BASE36) for _ in range(6))
    return f"{timestamp}_{suffix}"


class ResolutionState(NamedTuple):
    """Accumulator carried from one step to the next."""
    user_id: Optional[str] = None


def resolve_step(
    step: Step,
    state: ResolutionState,
    id_factory: Callable[[], str] = generate_random_id,
) -> tuple:
    """Resolve the placeholders of one step. Returns ``(step, new_state)``."""
    code = step.urpc_code
    decoded = decode_step(code)

    if decoded.operation in CREATE_OPERATIONS and GENERATED_ID_TOKEN in code:
        new_id = id_factory()
        code = code.replace(GENERATED_ID_TOKEN, new_id)
        if state.user_id is None and "user" in decoded.entity.lower():
            state = state._replace(user_id=new_id)

    if USER_ID_TOKEN in code:
        if state.user_id is None:
            logger.warning(
                f"Step {step.order} references {USER_ID_TOKEN} before any user was created; "
                "substituting an empty string"
            )
        code = code.replace(USER_ID_TOKEN, state.user_id or "")

    return step.model_copy(update={"urpc_code": code}), state


def resolve_placeholders(
    plan: ExecutionPlan,
    id_factory: Callable[[], str] = generate_random_id,
) -> ExecutionPlan:
    """
    Return a new plan with every placeholder substituted.

    Each create-family step containing ``generated-id`` gets one fresh id used
    for all of its occurrences. The first id generated for a user entity
    becomes the session user id that later ``user-id`` tokens resolve to.
    The returned plan keeps the input's step array order.
    """
    resolved: Dict[int, Step] = {}
    state = ResolutionState()
    indexed: List[tuple] = sorted(enumerate(plan.steps), key=lambda pair: pair[1].order)
    for index, step in indexed:
        resolved[index], state = resolve_step(step, state, id_factory)

    return plan.model_copy(
        update={"steps": [resolved[i] for i in range(len(plan.steps))]}
    )
