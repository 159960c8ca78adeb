"""
Data models for the tools system.

This module defines the declared parameters of a tool and the read-only
environment handed to tool handlers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# JSON-schema type names that map onto a parameter type
_JSON_SCHEMA_TYPES: dict[str, str] = {
    "string": "string",
    "number": "number",
    "integer": "number",
    "boolean": "boolean",
    "object": "object",
    "array": "array",
}


class ParameterType(str, Enum):
    """
    Types a tool parameter can declare.

    Examples
    --------
    >>> ParameterType("number") is ParameterType.NUMBER
    True
    """

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class ToolParameter(BaseModel):
    """
    A declared parameter of a tool.

    Parameters
    ----------
    name : str
        Argument name.
    type : ParameterType
        Expected value type.
    description : str, default=""
        Human-readable description for the model.
    required : bool, default=False
        Whether the argument must be present and non-empty.
    enum : list[Any] | None, optional
        Allowed values.
    default : Any, optional
        Value substituted for an empty string.
    properties : dict[str, ToolParameter] | None, optional
        Nested parameters of an ``object`` parameter.
    items : ToolParameter | None, optional
        Element parameter of an ``array`` parameter.

    Examples
    --------
    >>> ToolParameter(name="symbol", type=ParameterType.STRING, required=True)
    """

    name: str = Field(description="Parameter name")
    type: ParameterType = Field(description="Parameter type")
    description: str = Field(default="", description="Parameter description")
    required: bool = Field(default=False, description="Whether required")
    enum: list[Any] | None = Field(default=None, description="Allowed values")
    default: Any = Field(default=None, description="Default for empty strings")
    properties: dict[str, ToolParameter] | None = Field(
        default=None,
        description="Nested object parameters",
    )
    items: ToolParameter | None = Field(default=None, description="Array element parameter")

    @property
    def has_default(self) -> bool:
        """
        Check whether a default was declared, including an explicit None.

        Returns
        -------
        bool
            True if ``default`` was passed at construction.
        """
        return "default" in self.model_fields_set

    def to_json_schema(self) -> dict[str, Any]:
        """
        Convert the parameter into a JSON-schema property.

        Returns
        -------
        dict[str, Any]
            JSON-schema fragment describing this parameter.
        """
        schema: dict[str, Any] = {
            "type": self.type.value,
            "description": self.description,
        }

        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.has_default:
            schema["default"] = self.default
        if self.properties:
            schema["properties"] = {
                key: prop.to_json_schema() for key, prop in self.properties.items()
            }
            required: list[str] = [
                key for key, prop in self.properties.items() if prop.required
            ]
            if required:
                schema["required"] = required
        if self.items is not None:
            schema["items"] = self.items.to_json_schema()

        return schema

    @classmethod
    def from_json_schema(
        cls,
        name: str,
        schema: dict[str, Any],
        required: bool = False,
    ) -> ToolParameter | None:
        """
        Build a parameter from a JSON-schema property.

        Parameters
        ----------
        name : str
            Property name.
        schema : dict[str, Any]
            JSON-schema property definition.
        required : bool, default=False
            Whether the enclosing schema lists the property as required.

        Returns
        -------
        ToolParameter | None
            The parameter, or None when the property type has no
            equivalent (unions, ``null``, missing type).

        Examples
        --------
        >>> ToolParameter.from_json_schema("limit", {"type": "integer"}).type
        <ParameterType.NUMBER: 'number'>
        """
        raw_type: Any = schema.get("type")
        if not isinstance(raw_type, str) or raw_type not in _JSON_SCHEMA_TYPES:
            return None

        properties: dict[str, ToolParameter] | None = None
        nested: dict[str, Any] = schema.get("properties") or {}
        if nested:
            nested_required: set[str] = set(schema.get("required") or [])
            properties = {}
            for key, value in nested.items():
                param = cls.from_json_schema(key, value, key in nested_required)
                if param is not None:
                    properties[key] = param

        items: ToolParameter | None = None
        if isinstance(schema.get("items"), dict):
            items = cls.from_json_schema(f"{name}_item", schema["items"])

        values: dict[str, Any] = {
            "name": name,
            "type": ParameterType(_JSON_SCHEMA_TYPES[raw_type]),
            "description": schema.get("description", ""),
            "required": required,
            "enum": schema.get("enum"),
            "properties": properties or None,
            "items": items,
        }
        if "default" in schema:
            values["default"] = schema["default"]

        return cls(**values)


class ToolEnvironment(BaseModel):
    """
    Read-only context handed to a tool handler.

    Parameters
    ----------
    agent_id : str
        Agent on whose behalf the tool runs.
    conversation_id : str
        Conversation the call belongs to.
    tool_call_id : str | None, optional
        Identifier of the call being answered.
    memory : dict[str, Any], default={}
        Snapshot of the conversation memory.
    metadata : dict[str, Any], default={}
        Additional embedder-provided context.
    """

    model_config = {"frozen": True}

    agent_id: str = Field(description="Agent id")
    conversation_id: str = Field(description="Conversation id")
    tool_call_id: str | None = Field(default=None, description="Tool call id")
    memory: dict[str, Any] = Field(default_factory=dict, description="Memory snapshot")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra context")


def parameters_from_schema(schema: dict[str, Any]) -> list[ToolParameter]:
    """
    Convert a JSON object schema into a parameter list.

    Parameters
    ----------
    schema : dict[str, Any]
        Object schema with ``properties`` and optional ``required``.

    Returns
    -------
    list[ToolParameter]
        Parameters for every property with a supported type.

    Examples
    --------
    >>> parameters_from_schema({"properties": {"q": {"type": "string"}}, "required": ["q"]})
    """
    required: set[str] = set(schema.get("required") or [])
    parameters: list[ToolParameter] = []

    for name, prop in (schema.get("properties") or {}).items():
        param = ToolParameter.from_json_schema(name, prop, name in required)
        if param is not None:
            parameters.append(param)

    return parameters
