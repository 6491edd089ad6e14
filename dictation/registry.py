"""Registry of tools exposed through the stdio server."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Tuple

from .errors import ToolNotFound

ToolHandler = Callable[[Dict[str, Any]], str]


@dataclass(frozen=True)
class ToolParameter:
    """A single named argument of a tool."""

    type: str
    description: str
    required: bool = False

    def to_schema(self) -> Dict[str, Any]:
        return {"type": self.type, "description": self.description}


@dataclass(frozen=True)
class ToolDefinition:
    """A named operation with a described input and a handler."""

    name: str
    description: str
    handler: ToolHandler
    input_schema: Mapping[str, ToolParameter] = field(default_factory=dict)

    def json_schema(self) -> Dict[str, Any]:
        """Render the input description as a JSON Schema object."""
        return {
            "type": "object",
            "properties": {
                name: param.to_schema() for name, param in self.input_schema.items()
            },
            "required": [
                name for name, param in self.input_schema.items() if param.required
            ],
        }

    def listing(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.json_schema(),
        }


class ToolRegistry:
    """Immutable, ordered collection of tools.

    Iteration follows registration order.
    """

    def __init__(self, tools: Iterable[ToolDefinition]):
        """Build the registry.

        Raises:
            ValueError: If two tools share a name.
        """
        by_name: Dict[str, ToolDefinition] = {}
        for tool in tools:
            if tool.name in by_name:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            by_name[tool.name] = tool

        self._tools: Tuple[ToolDefinition, ...] = tuple(by_name.values())
        self._by_name: Mapping[str, ToolDefinition] = MappingProxyType(by_name)

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def get(self, name: str) -> ToolDefinition:
        """Look up a tool.

        Raises:
            ToolNotFound: If no tool has this name.
        """
        try:
            return self._by_name[name]
        except KeyError:
            raise ToolNotFound(name) from None

    def listings(self) -> List[Dict[str, Any]]:
        return [tool.listing() for tool in self._tools]
