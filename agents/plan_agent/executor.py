"""
Plan Executor Module

This module contains the PlanExecutor that runs resolved execution plans
against the repository interface, one step at a time, isolating failures so
that a failing step never prevents later steps from running.
"""

import logging
import re
from typing import Iterator, Tuple

from repositories.base import simplify_entity_name

from .config import OPERATION_METHODS
from .decoder import decode_step
from .schemas import DecodedCall, ExecutionPlan, PlanOutput, Step, StepOutput

logger = logging.getLogger(__name__)

EXECUTION_ERROR_MESSAGE = "Error occurred while executing operation."

_SOURCE_PLACEHOLDER = re.compile(r"^\[.*\]$")


class PlanExecutor:
    """
    Executes plan steps sequentially against a repository.

    Features:
    - Steps run in ascending ``order`` (stable for ties)
    - Unknown operations and repository errors become failed step outputs
    - No rollback and no abort-on-failure
    - Unreplaced ``[default]``-style sources resolved from entity configs
    """

    def __init__(self, repository, debug: bool = False):
        self.repository = repository
        self.debug = debug

    def execute_plan(self, plan: ExecutionPlan) -> PlanOutput:
        """Run every step of ``plan`` and collect one output per step."""
        results = [output for _step, output in self.iter_execute(plan)]
        return PlanOutput(execution_plan=plan, results=results)

    def iter_execute(self, plan: ExecutionPlan) -> Iterator[Tuple[Step, StepOutput]]:
        """Yield ``(step, output)`` pairs as each step completes."""
        for step in plan.sorted_steps():
            yield step, self.run_step(step)

    def run_step(self, step: Step) -> StepOutput:
        """Execute one step; never raises."""
        try:
            return self.execute_step(step.urpc_code)
        except Exception as e:
            logger.error(f"Step {step.order} execution error: {e}")
            return StepOutput(
                operation="unknown",
                entity="unknown",
                source="unknown",
                data=None,
                message=f"Step {step.order} execution error: {e}",
                success=False,
                urpc_code=step.urpc_code,
            )

    def execute_step(self, urpc_code: str) -> StepOutput:
        """Decode one pseudo-code string and dispatch it to the repository."""
        call = decode_step(urpc_code, debug=self.debug)
        source = self._resolve_source(call)
        method_name = OPERATION_METHODS.get(call.operation)

        if method_name is None:
            logger.warning(f"Unsupported operation in step: {call.method or call.operation}")
            return StepOutput(
                operation=call.operation,
                entity=call.entity,
                source=source,
                data=None,
                message=f"Unsupported operations: {call.method or call.operation}",
                success=False,
                urpc_code=urpc_code,
            )

        try:
            adapter = self.repository.repo(call.entity, source)
            data = getattr(adapter, method_name)(call.options)
        except Exception as e:
            # Detail stays in the log; the caller gets a generic message
            logger.warning(f"{call.operation} on {call.entity}/{source} failed: {e}")
            return StepOutput(
                operation=call.operation,
                entity=call.entity,
                source=source,
                data=None,
                message=EXECUTION_ERROR_MESSAGE,
                success=False,
                urpc_code=urpc_code,
            )

        logger.info(f"✅ {call.operation} on {call.entity} ({source}) succeeded")
        return StepOutput(
            operation=call.operation,
            entity=call.entity,
            source=source,
            data=data,
            message="",
            success=True,
            urpc_code=urpc_code,
        )

    def _resolve_source(self, call: DecodedCall) -> str:
        """Replace a bracketed placeholder source with the entity's default."""
        if not _SOURCE_PLACEHOLDER.match(call.source):
            return call.source
        try:
            configs = self.repository.get_entity_configs() or {}
            sources = self.repository.get_entity_sources() or {}
        except Exception as e:
            logger.warning(f"Could not read entity configuration: {e}")
            return call.source

        entity_key = simplify_entity_name(call.entity)
        default = (configs.get(entity_key) or configs.get(call.entity) or {}).get("defaultSource")
        if default:
            return default
        for name, declared in sources.items():
            if simplify_entity_name(name) == entity_key and declared:
                return declared[0]
        return call.source
