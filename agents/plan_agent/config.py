"""
Configuration for the Execution-Plan Agent.

This module contains configuration settings for the plan agent, including
model parameters, the operation vocabulary and the options-decoding rules.
"""

# Model Configuration (OpenAI-compatible endpoint, OpenRouter by default)
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "google/gemini-2.0-flash-001"
PLAN_TEMPERATURE = 0.1  # Low temperature for consistent plans
PLAN_MAX_TOKENS = 2000

SUMMARY_MODEL = "openai/gpt-4o-mini"
SUMMARY_TEMPERATURE = 0.3
SUMMARY_MAX_TOKENS = 600

# Fallback source when the pseudo-code names none
FALLBACK_SOURCE = "memory"

# Repository operations, multi-record variants first
OPERATIONS = [
    "findMany",
    "findOne",
    "createMany",
    "create",
    "updateMany",
    "update",
    "upsertMany",
    "upsert",
    "delete",
]

# Pseudo-code operation -> adapter method
OPERATION_METHODS = {
    "findMany": "find_many",
    "findOne": "find_one",
    "createMany": "create_many",
    "create": "create",
    "updateMany": "update_many",
    "update": "update",
    "upsertMany": "upsert_many",
    "upsert": "upsert",
    "delete": "delete",
}

CREATE_OPERATIONS = {"create", "createMany", "upsert", "upsertMany"}

# Placeholder tokens emitted by the model
GENERATED_ID_TOKEN = "generated-id"
USER_ID_TOKEN = "user-id"

# Tokens that disqualify an options literal from structured parsing
DENY_LIST_PATTERNS = [
    r"function\s*\(",
    r"=>",
    r"\breturn\b",
    r"\beval\b",
    r"\bsetTimeout\b",
    r"\bsetInterval\b",
    r"\brequire\b",
    r"\bimport\b",
    r"\bprocess\b",
    r"\b__dirname\b",
    r"\b__filename\b",
    r"\bglobal\b",
    r"\bwindow\b",
    r"\bdocument\b",
    r"\bconsole\b",
]

# Entities and sources that belong to the agent itself and are never planned against
HIDDEN_ENTITIES = {"ChatEntity"}
HIDDEN_SOURCES = {"_global", "mastra"}
