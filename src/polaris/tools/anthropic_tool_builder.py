"""
Anthropic tool schemas generated from the Pydantic argument models.
"""
from typing import Any, Dict, Type

from pydantic import BaseModel


def _resolve_refs(schema_obj: Any, definitions: Dict[str, Any]) -> Any:
    """Recursively inline ``#/$defs/...`` references."""
    if isinstance(schema_obj, dict):
        ref_path = schema_obj.get("$ref")
        if isinstance(ref_path, str) and ref_path.startswith("#/$defs/"):
            def_name = ref_path.split("/")[-1]
            if def_name in definitions:
                return _resolve_refs(definitions[def_name], definitions)
            return schema_obj
        return {key: _resolve_refs(value, definitions) for key, value in schema_obj.items()}
    if isinstance(schema_obj, list):
        return [_resolve_refs(item, definitions) for item in schema_obj]
    return schema_obj


def build_pydantic_tool_schema(model: Type[BaseModel], name: str, description: str) -> Dict[str, Any]:
    """
    Build an Anthropic tool schema from a Pydantic model.

    The schema the model sees is the one its arguments are validated against.

    Args:
        model: The Pydantic model describing the tool arguments.
        name: The tool name presented to the model.
        description: The tool description.
    """
    model_schema = model.model_json_schema()
    definitions = model_schema.get("$defs", {})
    properties = _resolve_refs(model_schema.get("properties", {}), definitions)

    return {
        "name": name,
        "description": description,
        "input_schema": {
            "type": "object",
            "properties": properties,
            "required": list(model_schema.get("required", [])),
        },
    }
