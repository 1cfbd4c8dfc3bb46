"""Named input plugins with validated configuration."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from mysql_stream.service.input import Input

InputConstructor = Callable[[Any], Input]


@dataclass(frozen=True)
class InputPlugin:
    name: str
    config_model: type[BaseModel]
    constructor: InputConstructor
    summary: str = ""


class InputRegistry:
    """Maps input type names to their config model and constructor."""

    def __init__(self) -> None:
        self._plugins: dict[str, InputPlugin] = {}

    def register(
        self,
        name: str,
        config_model: type[BaseModel],
        constructor: InputConstructor,
        *,
        summary: str = "",
    ) -> None:
        if name in self._plugins:
            msg = f"Input '{name}' is already registered"
            raise ValueError(msg)
        self._plugins[name] = InputPlugin(name, config_model, constructor, summary)

    def names(self) -> list[str]:
        return sorted(self._plugins)

    def get(self, name: str) -> InputPlugin:
        try:
            return self._plugins[name]
        except KeyError:
            msg = f"Unknown input type '{name}' (available: {', '.join(self.names())})"
            raise ValueError(msg) from None

    def parse_config(self, name: str, raw: dict[str, Any]) -> BaseModel:
        """Validate *raw* against the plugin's config model."""
        plugin = self.get(name)
        try:
            return plugin.config_model.model_validate(raw)
        except ValidationError as exc:
            msg = f"Invalid {name} input config:\n{exc}"
            raise ValueError(msg) from exc

    def build(self, name: str, raw: dict[str, Any]) -> Input:
        """Validate *raw* and construct the named input."""
        config = self.parse_config(name, raw)
        return self._plugins[name].constructor(config)


def default_registry() -> InputRegistry:
    """Registry with every built-in input registered."""
    from mysql_stream.stream import input as mysql_stream_input

    registry = InputRegistry()
    mysql_stream_input.register(registry)
    return registry
