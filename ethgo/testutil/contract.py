"""Builders for Solidity test contracts with events."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from ..primitives import keccak256


@dataclass
class _EventField:
    indexed: bool
    type: str


@dataclass
class Event:
    """A contract event declaration."""

    name: str
    fields: list[_EventField] = field(default_factory=list)

    def add(self, type_str: str, indexed: bool) -> "Event":
        """Append a field and return the event for chaining."""
        self.fields.append(_EventField(indexed, type_str))
        return self

    def sig(self) -> str:
        """Return the 0x-prefixed Keccak-256 topic of the event signature."""
        signature = f"{self.name}({','.join(f.type for f in self.fields)})"
        return "0x" + keccak256(signature.encode()).hex()

    def _declaration(self) -> str:
        args = []
        for index, item in enumerate(self.fields):
            arg = item.type
            if item.indexed:
                arg += " indexed"
            args.append(f"{arg} val_{index}")
        return f"event {self.name}({', '.join(args)});"

    def _setter(self) -> str:
        params = []
        body = []
        for index, item in enumerate(self.fields):
            typ = item.type
            if typ == "string" or "[" in typ:
                typ += " memory"
            params.append(f"{typ} val_{index}")
            body.append(f"val_{index}")
        text = f"function setter{self.name}({', '.join(params)}) public payable {{\n"
        text += f"emit {self.name}({', '.join(body)});\n"
        text += "}"
        return text


def new_event(name: str, *args) -> Event:
    """Create an event from alternating ``type, indexed`` arguments."""
    if len(args) % 2:
        raise ValueError("it should be even")
    event = Event(name)
    for type_str, indexed in zip(args[::2], args[1::2]):
        event.add(type_str, indexed)
    return event


class Contract:
    """Accumulates pieces of a Solidity contract named ``Sample``."""

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._callbacks: list[Callable[[], str]] = []

    def add_event(self, event: Event) -> None:
        self.add_callback(event._declaration)
        self.add_callback(event._setter)
        self._events.append(event)

    def get_event(self, name: str) -> Event | None:
        return next((event for event in self._events if event.name == name), None)

    def source(self) -> str:
        """Return the Solidity source text of the contract."""
        text = "pragma solidity ^0.5.5;\n"
        text += "pragma experimental ABIEncoderV2;\n"
        text += "\n"
        text += "contract Sample {\n"
        for callback in self._callbacks:
            text += callback() + "\n"
        text += "}"
        return text

    def add_callback(self, callback: Callable[[], str]) -> None:
        self._callbacks.append(callback)

    def add_constructor(self, *args: str) -> None:
        """Add public variables and a constructor that sets them."""

        def render() -> str:
            text = ""
            inputs = []
            body = ""
            for index, arg in enumerate(args):
                text += f"{arg} public val_{index};\n"
                inputs.append(f"{arg} local_{index}")
                body += f"val_{index} = local_{index};\n"
            text += "constructor(" + ",".join(inputs) + ") public {\n"
            text += body
            text += "}"
            return text

        self.add_callback(render)

    def add_dual_caller(self, func_name: str, *args: str) -> None:
        """Add a view function that returns its own arguments."""

        def render() -> str:
            names = [f"val_{index}" for index in range(len(args))]
            params = [f"{typ} {name}" for typ, name in zip(args, names)]
            text = (
                f"function {func_name}({','.join(params)}) public view "
                f"returns ({','.join(args)}) {{\n"
            )
            text += f"return ({','.join(names)});\n"
            text += "}"
            return text

        self.add_callback(render)

    def add_output_caller(self, func_name: str) -> None:
        """Add a view function without inputs that returns 1."""
        self.add_callback(
            lambda: f"function {func_name} () public view returns (uint256) {{\n"
            "\t\t\treturn 1;\n"
            "\t\t}"
        )

    def emit_event(self, func_name: str, name: str, *args: str) -> None:
        """Add a payable function that emits event ``name`` with ``args``."""
        if self.get_event(name) is None:
            raise ValueError(f"event {name} does not exists")

        def render() -> str:
            text = f"function {func_name}() public payable {{\n"
            text += f"emit {name}({', '.join(args)});\n"
            text += "}"
            return text

        self.add_callback(render)