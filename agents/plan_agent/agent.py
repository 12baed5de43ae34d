"""
Execution-Plan Agent Module

This module contains the PlanAgent that turns a free-form natural-language
request into an ordered execution plan of repository operations using a
language model, executes the plan, and optionally summarizes the outcome.

Flow:

    instructions (cached) → model call → plan parsing + placeholder
    resolution → sequential execution → optional summary
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from agents.base import Agent
from agents.summarizer.agent import SummaryAgent
from audit.plan_log import PlanLogCollector
from repositories.base import simplify_entity_name
from services.instruction_cache import InstructionCache
from services.llm_service import LLMService

from .config import DEFAULT_MODEL, PLAN_MAX_TOKENS, PLAN_TEMPERATURE
from .executor import PlanExecutor
from .instructions import build_instructions, convert_entity_sources_to_markdown, convert_schema_to_markdown
from .parser import parse_plan
from .schemas import ExecutionPlan, PlanOutput
from .streaming import StreamingReporter, make_event

logger = logging.getLogger(__name__)

EntityInfo = Tuple[Dict[str, Any], Dict[str, List[str]], Dict[str, Any]]


class PlanAgent(Agent):
    """
    Natural-language front end for a schema-described repository.

    Features:
    - Schema-aware instructions, cached until the entity information changes
    - Plan parsing that degrades to an empty plan instead of raising
    - Cross-step placeholder resolution (``generated-id`` / ``user-id``)
    - Sequential execution with per-step failure isolation
    - Optional natural-language summary of the results
    - Streaming mode emitting newline-delimited JSON events
    - Proxy mode returning the plan for a remote caller to execute
    """

    name = "plan_agent"

    def __init__(
        self,
        repository,
        llm=LLMService,
        model: str = DEFAULT_MODEL,
        summarizer: Optional[SummaryAgent] = None,
        debug: bool = False,
        log_plans: bool = False,
    ):
        """
        Initialize the plan agent.

        Args:
            repository: Object implementing the repository interface
                (``repo``, ``get_entity_schemas``, ``get_entity_sources``,
                ``get_entity_configs``)
            llm: Language-model service exposing ``invoke``, ``stream`` and ``text_of``
            model: Default planning model
            summarizer: Summary agent; one sharing ``llm`` is created when omitted
            debug: Log schemas, rendered markdown and decoding details
            log_plans: Append every processed request to the plan audit log
        """
        self.repository = repository
        self.llm = llm
        self.model = model
        self.summarizer = summarizer or SummaryAgent(llm=llm)
        self.debug = debug
        self.log_plans = log_plans
        self.instruction_cache = InstructionCache()
        self.executor = PlanExecutor(repository, debug=debug)
        self.reporter = StreamingReporter(self.executor, self.summarizer)
        logger.info(f"PlanAgent initialized with model={self.model}")

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------
    def get_entity_info(self, entities: Optional[List[str]] = None) -> EntityInfo:
        """Server-declared entity info, optionally restricted to ``entities``."""
        schemas = self.repository.get_entity_schemas() or {}
        sources = self.repository.get_entity_sources() or {}
        configs = self.repository.get_entity_configs() or {}
        if not entities:
            return schemas, sources, configs

        wanted = {simplify_entity_name(e) for e in entities}

        def keep(mapping: Dict[str, Any]) -> Dict[str, Any]:
            return {k: v for k, v in mapping.items() if simplify_entity_name(k) in wanted}

        return keep(schemas), keep(sources), keep(configs)

    def build_instructions(
        self,
        entities: Optional[List[str]] = None,
        proxy: bool = False,
        entity_schemas: Optional[Dict[str, Any]] = None,
        entity_sources: Optional[Dict[str, List[str]]] = None,
        entity_configs: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Return the instruction document for this request.

        In proxy mode caller-declared schemas/sources/configs are merged over
        the server's and the entity filter is ignored.
        """
        schemas, sources, configs = self.get_entity_info(None if proxy else entities)
        if proxy:
            schemas = {**schemas, **(entity_schemas or {})}
            sources = {**sources, **(entity_sources or {})}
            configs = {**configs, **(entity_configs or {})}

        if self.debug:
            logger.debug(f"[Schemas]: {schemas}")
            logger.debug(f"[Entity Sources]: {sources}")
            logger.debug(f"[Entity Configs]: {configs}")
            logger.debug(f"[Entity Markdown]:\n{convert_schema_to_markdown(schemas)}")
            logger.debug(f"[Entity Sources Markdown]:\n{convert_entity_sources_to_markdown(sources, configs)}")

        return self.instruction_cache.get_or_build(schemas, sources, configs, build_instructions)

    def invalidate_instructions(self) -> None:
        """Drop the cached instructions, e.g. after entities were registered."""
        self.instruction_cache.invalidate()

    @staticmethod
    def _messages(instructions: str, user_input: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": instructions},
            {"role": "user", "content": user_input},
        ]

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def run(self, payload: str, context: Dict[str, Any]) -> PlanOutput:
        return self.process_request(payload, **context)

    def process_request(
        self,
        input: str,
        model: Optional[str] = None,
        proxy: bool = False,
        summary: bool = False,
        entities: Optional[List[str]] = None,
        entity_schemas: Optional[Dict[str, Any]] = None,
        entity_sources: Optional[Dict[str, List[str]]] = None,
        entity_configs: Optional[Dict[str, Any]] = None,
    ) -> PlanOutput:
        """
        Plan (and unless ``proxy``, execute) a natural-language request.

        Returns:
            PlanOutput: the resolved plan and one result per executed step.
            In proxy mode results are empty and the caller executes the plan.
        """
        try:
            instructions = self.build_instructions(
                entities, proxy, entity_schemas, entity_sources, entity_configs
            )
            response = self.llm.invoke(
                model=model or self.model,
                messages=self._messages(instructions, input),
                temperature=PLAN_TEMPERATURE,
                max_tokens=PLAN_MAX_TOKENS,
            )
            text = self.llm.text_of(response)
            if self.debug:
                logger.debug(f"[AI Response]: {text}")

            parsed = parse_plan(text)
            if proxy:
                self._audit(input, parsed, proxy=True)
                return parsed

            logger.info(f"Executing plan with {len(parsed.execution_plan.steps)} step(s)")
            output = self.executor.execute_plan(parsed.execution_plan)
            output.message = parsed.message

            if summary and output.results:
                summary_text = self.summarizer.summarize(input, output.results)
                # The summary replaces the raw step data
                output = output.model_copy(
                    update={"results": [], "summary": True, "summaryText": summary_text}
                )
            self._audit(input, output)
            return output
        except Exception as e:
            logger.error(f"Error occurred while processing request: {e}")
            return PlanOutput(
                execution_plan=ExecutionPlan(steps=[], total_steps=0),
                results=[],
                message=f"Error occurred while processing request: {e}",
            )

    def stream_response(
        self,
        input: str,
        model: Optional[str] = None,
        proxy: bool = False,
        summary: bool = False,
        entities: Optional[List[str]] = None,
        entity_schemas: Optional[Dict[str, Any]] = None,
        entity_sources: Optional[Dict[str, List[str]]] = None,
        entity_configs: Optional[Dict[str, Any]] = None,
    ) -> Iterator[str]:
        """Yield newline-delimited JSON event records for ``input``."""
        try:
            instructions = self.build_instructions(
                entities, proxy, entity_schemas, entity_sources, entity_configs
            )
            text_stream = self.llm.stream(
                model=model or self.model,
                messages=self._messages(instructions, input),
                temperature=PLAN_TEMPERATURE,
                max_tokens=PLAN_MAX_TOKENS,
            )
        except Exception as e:
            logger.error(f"Error occurred while processing request: {e}")
            yield make_event("error", f"Error occurred while processing request: {e}")
            return

        yield from self.reporter.stream(
            text_stream,
            question=input,
            proxy=proxy,
            summary=summary,
            on_final=lambda final: self._audit(input, final, proxy=proxy),
        )

    def _audit(self, input_text: str, output: PlanOutput, proxy: bool = False) -> None:
        if not self.log_plans:
            return
        try:
            PlanLogCollector.log_plan(
                input_text=input_text,
                execution_plan=output.execution_plan,
                results=output.results,
                summary_text=output.summaryText,
                proxy=proxy,
            )
        except OSError as e:
            logger.warning(f"Could not write plan audit log: {e}")
