"""Core orchestrator for the execution-plan agent.

This module defines the :class:`Orchestrator` which wires the repository and
the :class:`~agents.plan_agent.agent.PlanAgent` together and exposes a single
:meth:`handle` entry point for chat requests.  The flow is:

    request validation → instruction building → planning → placeholder
    resolution → execution → optional summary (or streamed events).

Components are located by dotted Python paths with optional constructor
parameters, read from a configuration file (YAML or dictionary).  Example
YAML::

    agent:
      model: google/gemini-2.0-flash-001
      debug: false
      log_plans: false
    entities:
      UserEntity:
        defaultSource: memory
        schema:
          type: object
          properties:
            id: {type: string}
            name: {type: string}
        adapters:
          - class: repositories.memory.MemoryAdapter
            params:
              data: []
          - class: repositories.sqlite.SQLiteAdapter
            params:
              db_path: data/db.sqlite
              table: users

Instead of ``entities`` a ``repository`` section may name a class (or
factory) implementing the repository interface directly.
"""
from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import yaml
from pydantic import BaseModel

from agents.plan_agent.agent import PlanAgent
from agents.plan_agent.schemas import PlanOutput
from repositories.registry import RepositoryRegistry

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).resolve().parent / "workflow.yaml"


def _import_from_path(path: str):
    """Import ``path`` of the form ``module.submodule:Class`` or
    ``module.submodule.Class`` and return the class."""
    if ":" in path:
        module_path, class_name = path.split(":", 1)
    else:
        module_path, class_name = path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def _instantiate(cfg: Dict[str, Any]):
    if "class" not in cfg:
        raise ValueError(f"Component configuration is missing 'class': {cfg}")
    cls = _import_from_path(cfg["class"])
    return cls(**(cfg.get("params") or {}))


def build_registry(entities: Dict[str, Any]) -> RepositoryRegistry:
    """Build a :class:`RepositoryRegistry` from an ``entities`` config section."""
    registry = RepositoryRegistry()
    for name, entity_cfg in (entities or {}).items():
        entity_cfg = entity_cfg or {}
        registry.register_entity(
            name,
            schema=entity_cfg.get("schema"),
            default_source=entity_cfg.get("defaultSource"),
        )
        for adapter_cfg in entity_cfg.get("adapters") or []:
            registry.register_adapter(name, _instantiate(adapter_cfg), source=adapter_cfg.get("source"))
    return registry


class ChatRequest(BaseModel):
    """Invocation payload accepted by :meth:`Orchestrator.handle`."""

    input: str = ""
    model: Optional[str] = None
    proxy: bool = False
    summary: bool = False
    stream: bool = False
    entities: Optional[List[str]] = None
    entity_schemas: Optional[Dict[str, Any]] = None
    entity_sources: Optional[Dict[str, List[str]]] = None
    entity_configs: Optional[Dict[str, Any]] = None


class Orchestrator:
    """Configurable entry point around the plan agent."""

    def __init__(self, config: Union[Dict[str, Any], str, Path, None] = None, llm=None):
        if config is None:
            config = DEFAULT_CONFIG
        if isinstance(config, (str, Path)):
            with open(config, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        self.config = config

        if config.get("repository"):
            self.repository = _instantiate(config["repository"])
        elif config.get("entities"):
            self.repository = build_registry(config["entities"])
        else:
            raise ValueError("Configuration needs either a 'repository' or an 'entities' section")

        agent_cfg = dict(config.get("agent") or {})
        if llm is None and agent_cfg.get("llm"):
            llm = _import_from_path(agent_cfg.pop("llm"))
        agent_cfg.pop("llm", None)
        if llm is not None:
            agent_cfg["llm"] = llm
        self.agent = PlanAgent(self.repository, **agent_cfg)
        logger.info(f"Orchestrator ready with entities: {list(self.repository.get_entity_schemas())}")

    def handle(self, request: Union[ChatRequest, Dict[str, Any]]) -> Union[PlanOutput, Iterator[str]]:
        """Process ``request``.

        Returns
        -------
        PlanOutput | Iterator[str]
            The executed (or, in proxy mode, unexecuted) plan, or an iterator
            of newline-delimited JSON events when ``stream`` is set.
        """
        if isinstance(request, dict):
            request = ChatRequest(**request)
        if not request.input or not request.input.strip():
            raise ValueError("input is required")

        context = request.model_dump(exclude={"stream", "input"})
        if request.stream:
            return self.agent.stream_response(request.input, **context)
        return self.agent.run(request.input, context)
