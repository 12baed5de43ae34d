"""
Instruction Builder Module

Renders entity schemas and source availability into the instruction document
the planning model receives. Pure text construction; an empty schema set
still yields a complete (if uninformative) document.
"""
from typing import Any, Dict, List, Optional

from repositories.base import simplify_entity_name

from .config import HIDDEN_ENTITIES, HIDDEN_SOURCES


def _type_string(schema_obj: Dict[str, Any]) -> str:
    if schema_obj.get("type") == "array":
        items = schema_obj.get("items") or {}
        return f"{items.get('type')}[]" if items.get("type") else "any[]"
    return str(schema_obj.get("type", "any"))


def convert_schema_to_markdown(schemas: Dict[str, Dict[str, Any]]) -> str:
    """List each entity's fields as ``- name?: type (description)``."""
    lines: List[str] = []
    for entity_name, entity_schema in (schemas or {}).items():
        if entity_name in HIDDEN_ENTITIES:
            continue
        lines.append(f"### {entity_name}:")
        required = entity_schema.get("required") or []
        for prop_name, prop_schema in (entity_schema.get("properties") or {}).items():
            optional = "" if prop_name in required else "?"
            description = prop_schema.get("description") or ""
            lines.append(f"- {prop_name}{optional}: {_type_string(prop_schema)} ({description})")
        lines.append("")
    return "\n".join(lines)


def convert_entity_sources_to_markdown(
    entity_sources: Dict[str, List[str]],
    entity_configs: Dict[str, Dict[str, Any]],
) -> str:
    """List each entity's sources, marking the configured default."""
    lines = []
    for entity, sources in (entity_sources or {}).items():
        if entity in HIDDEN_ENTITIES or any(s in HIDDEN_SOURCES for s in sources):
            continue
        config = (entity_configs or {}).get(simplify_entity_name(entity)) or {}
        default_source = config.get("defaultSource")
        rendered = ", ".join(
            f'"{s}" (default)' if s == default_source else f'"{s}"' for s in sources
        )
        lines.append(f"- {entity}: {rendered}")
    return "\n".join(lines)


OPERATION_EXAMPLES = """**CRUD Operations:**
- **Find one data**: repo({entity: "user", source: "[select from supported sources]"}).findOne({where: {name: "jack"}})
- **Query multiple data**: repo({entity: "user", source: "[select from supported sources]"}).findMany({where: {age: {gt: 18}}, limit: 10})
- **Create one data**: repo({entity: "user", source: "[select from supported sources]"}).create({data: {id: "generated-id", name: "jack", email: "jack@example.com"}})
- **Create multiple data**: repo({entity: "user", source: "[select from supported sources]"}).createMany({data: [{id: "generated-id", name: "jack", email: "jack@example.com"}, {id: "generated-id-2", name: "jane", email: "jane@example.com"}]})
- **Update one data**: repo({entity: "user", source: "[select from supported sources]"}).update({where: {id: "user-id"}, data: {name: "New Name"}})
- **Update multiple data**: repo({entity: "user", source: "[select from supported sources]"}).updateMany({where: {status: "pending"}, data: {status: "active"}})
- **Delete one data**: repo({entity: "user", source: "[select from supported sources]"}).delete({where: {id: "user-id"}})
- **Upsert one data**: repo({entity: "user", source: "[select from supported sources]"}).upsert({where: {email: "test@test.com"}, update: {name: "Updated"}, create: {id: "generated-id", name: "New", email: "test@test.com"}})
- **Upsert multiple data**: repo({entity: "user", source: "[select from supported sources]"}).upsertMany({data: [{id: "uuid1", name: "jack"}, {id: "uuid2", name: "jane"}], onConflictDoUpdate: {target: "id"}})
- **Paginated / sorted query**: repo({entity: "user", source: "[select from supported sources]"}).findMany({limit: 10, offset: 0, order_by: {id: "desc"}})"""

OPERATOR_EXAMPLES = """**Query Operators**:
- Comparison: gt, gte, lt, lte, eq, ne, e.g. {where: {age: {gte: 18, lt: 65}}}
- Set membership: in, nin, e.g. {where: {status: {in: ["active", "pending"]}}}
- String matching: contains, startsWith, endsWith, with mode: "insensitive", e.g. {where: {name: {contains: "ja", mode: "insensitive"}}}
- Negation: not, e.g. {where: {id: {not: null}}}"""

RESPONSE_FORMAT = """## Unified JSON Response Format

**ALL responses must use this JSON structure:**

{
  "execution_plan": {
    "steps": [
      {
        "description": "Brief description of the operation",
        "urpc_code": "repo({entity: \\"entity\\", source: \\"source\\"}).operation(...)",
        "order": 1
      }
    ],
    "total_steps": 1
  }
}

## Examples

**Single Operation:**
User: "Find all users"
Response:
{
  "execution_plan": {
    "steps": [
      {
        "description": "Find all users",
        "urpc_code": "repo({entity: \\"user\\", source: \\"[default-source]\\"}).findMany()",
        "order": 1
      }
    ],
    "total_steps": 1
  }
}

**Multi-Step Operation:**
User: "Create user John and create a post for him"
Response:
{
  "execution_plan": {
    "steps": [
      {
        "description": "Create user John",
        "urpc_code": "repo({entity: \\"user\\", source: \\"[default-source]\\"}).create({data: {id: \\"generated-id\\", name: \\"John\\", email: \\"john@example.com\\"}})",
        "order": 1
      },
      {
        "description": "Create post for John",
        "urpc_code": "repo({entity: \\"post\\", source: \\"[default-source]\\"}).create({data: {id: \\"generated-id\\", title: \\"John's Post\\", content: \\"Hello!\\", userId: \\"user-id\\"}})",
        "order": 2
      }
    ],
    "total_steps": 2
  }
}"""


def build_instructions(
    entity_schemas: Optional[Dict[str, Dict[str, Any]]] = None,
    entity_sources: Optional[Dict[str, List[str]]] = None,
    entity_configs: Optional[Dict[str, Dict[str, Any]]] = None,
) -> str:
    """Build the full instruction document for the planning model."""
    entity_markdown = convert_schema_to_markdown(entity_schemas or {})
    sources_markdown = convert_entity_sources_to_markdown(entity_sources or {}, entity_configs or {})

    return f"""You are an intelligent data manipulation assistant for a schema-described repository.

## Entity Structure
{entity_markdown or "(no entities declared)"}

## Entity Supported Sources
{sources_markdown or "(no sources declared)"}

## Core Operations
**Entity Mapping**: map plural and synonym mentions to the entity names above, e.g. user/users → "user", post/posts/article/articles → "post"

{OPERATION_EXAMPLES}

{OPERATOR_EXAMPLES}

## Critical Rules
1. **Source Selection**: Use the source marked "(default)" if the user doesn't specify one; use a user-specified source only if the entity supports it; with no default, use the entity's first source
2. **UpdateMany Requirement**: MUST include a where clause. For "all records" use {{where: {{id: {{not: null}}}}}}
3. **Response Format**: ALWAYS return the JSON execution plan format, even for single operations

{RESPONSE_FORMAT}

## Key Guidelines
- Use "generated-id" as the id placeholder in create operations
- Use "user-id" to refer to the user created by an earlier step of the same plan
- Include required fields (those without "?") based on the entity schema
- Replace [default-source] with the actual default source from the supported sources
- Number steps with "order" starting at 1 in the order they must run
- ALWAYS return valid JSON, never natural language responses"""
