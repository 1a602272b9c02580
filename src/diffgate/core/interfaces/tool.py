"""
Base Tool - Abstract base class for the tools exposed to the agent
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ToolCategory(Enum):
    """Tool categories"""

    FILE = "file"
    REVIEW = "review"


@dataclass
class ToolParameter:
    """Tool parameter definition"""

    name: str
    param_type: str  # string, int, bool
    description: str
    required: bool = True
    default: Any = None


@dataclass
class ToolMetadata:
    """Tool metadata"""

    name: str
    description: str
    category: ToolCategory
    version: str = "1.0.0"
    requires_approval: bool = False
    parameters: list[ToolParameter] = field(default_factory=list)


class BaseTool(ABC):
    """
    Abstract base class for all tools.

    Subclasses define a class-level ``METADATA`` dict and implement
    ``execute(parameters)``. ``execute`` never raises: every failure comes
    back as an error response so the protocol layer always has a
    well-formed result to return.
    """

    METADATA: dict[str, Any]

    def __init__(self) -> None:
        self._metadata: ToolMetadata | None = None

    @property
    def metadata(self) -> ToolMetadata:
        """Tool metadata built from the class-level ``METADATA`` dict (cached)."""
        if self._metadata is None:
            cls_meta = type(self).METADATA
            self._metadata = ToolMetadata(
                name=cls_meta["name"],
                description=cls_meta["description"],
                category=cls_meta["category"],
                version=cls_meta.get("version", "1.0.0"),
                requires_approval=cls_meta.get("requires_approval", False),
                parameters=[ToolParameter(**p) for p in cls_meta.get("parameters", [])],
            )
        return self._metadata

    def input_schema(self) -> dict[str, Any]:
        """JSON schema for the tool arguments."""
        json_types = {"string": "string", "int": "integer", "bool": "boolean"}
        return {
            "type": "object",
            "properties": {
                p.name: {"type": json_types.get(p.param_type, p.param_type), "description": p.description}
                for p in self.metadata.parameters
            },
            "required": [p.name for p in self.metadata.parameters if p.required],
        }

    @abstractmethod
    async def execute(self, parameters: dict[str, Any]) -> dict[str, Any]:
        """
        Execute the tool

        Args:
            parameters: Dictionary of parameter name -> value

        Returns:
            Dictionary with 'success' (bool) and 'result' or 'error'
        """

    _TYPE_VALIDATORS: dict[str, tuple[type, ...]] = {
        "string": (str,),
        "int": (int,),
        "bool": (bool,),
    }
    _TYPE_MESSAGES: dict[str, str] = {
        "string": "must be a string",
        "int": "must be an integer",
        "bool": "must be a boolean",
    }

    def validate_parameters(self, parameters: dict[str, Any]) -> tuple[bool, str | None]:
        """
        Validate parameters against metadata

        Returns:
            (is_valid, error_message)
        """
        for param in self.metadata.parameters:
            value = parameters.get(param.name)
            # JSON null counts as absent
            if value is None:
                if param.required:
                    return False, f"Missing required parameter: {param.name}"
                continue
            expected_types = self._TYPE_VALIDATORS.get(param.param_type)
            wrong_type = expected_types and not isinstance(value, expected_types)
            # bool is an int subclass; an int parameter must not accept True/False
            if param.param_type == "int" and isinstance(value, bool):
                wrong_type = True
            if wrong_type:
                msg = self._TYPE_MESSAGES.get(param.param_type, f"must be of type {param.param_type}")
                return False, f"Parameter {param.name} {msg}"

        return True, None

    def _success_response(self, result: Any = None, **kwargs) -> dict[str, Any]:
        response = {"success": True, "result": result}
        response.update(kwargs)
        return response

    def _error_response(self, error: str, **kwargs) -> dict[str, Any]:
        response = {"success": False, "error": error}
        response.update(kwargs)
        return response
