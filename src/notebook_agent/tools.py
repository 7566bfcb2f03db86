"""Tool contract.

A tool declares a name, a description for the planning oracle and a pydantic
input model. `execute` validates raw arguments and delegates to `run`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .errors import ToolExecutionError
from .schemas import ToolDefinition
from .state import NotebookContext

_RESULT_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


class Tool(ABC):
    name: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[type[BaseModel]]
    # Generation-then-execution tools whose failures the planning oracle can fix.
    repairable: ClassVar[bool] = False

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameter_schema=self.input_model.model_json_schema(),
            repairable=self.repairable,
        )

    def validate_arguments(self, arguments: dict[str, Any]) -> BaseModel:
        """Raises pydantic.ValidationError on a schema mismatch."""
        return self.input_model.model_validate(arguments)

    async def execute(self, arguments: dict[str, Any], context: NotebookContext) -> Any:
        try:
            payload = self.validate_arguments(arguments)
        except ValidationError as exc:
            raise ToolExecutionError(
                "INVALID_ARGUMENT",
                f"Invalid arguments for {self.name}",
                {"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc
        result = await self.run(payload, context)
        if result is None:
            return {}
        try:
            return _RESULT_ADAPTER.dump_python(result, mode="json")
        except PydanticSerializationError as exc:
            raise ToolExecutionError(
                "INVALID_RESULT",
                f"{self.name} returned a result that cannot be stored as JSON",
                {"type": type(result).__name__},
            ) from exc

    @abstractmethod
    async def run(self, payload: Any, context: NotebookContext) -> Any:
        """Produce a result or raise ToolExecutionError."""
