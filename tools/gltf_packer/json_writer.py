"""Streaming JSON formatter.

Text is written incrementally through begin/end calls instead of being built
from an intermediate tree. The output matches ``json.dumps(tree, indent=n)``
for the same sequence of nodes.
"""
import io
import json
from typing import Any, List, Optional

_MAP = "map"
_LIST = "list"


class JsonWriter:
    """Writes JSON text one node at a time."""

    def __init__(self, indent: Optional[int] = 2):
        self.indent = indent
        self._out = io.StringIO()
        # one [kind, item_count] entry per open container
        self._stack: List[list] = []
        self._pending_key = False
        self._done = False

    def _newline(self, depth: int):
        if self.indent is not None:
            self._out.write("\n" + " " * (self.indent * depth))

    def _separator(self) -> str:
        return "," if self.indent is not None else ", "

    def _before_value(self):
        if self._done:
            raise ValueError("JSON document already complete")
        if not self._stack:
            return
        frame = self._stack[-1]
        if frame[0] == _MAP:
            if not self._pending_key:
                raise ValueError("Value inside a map must follow a key")
            self._pending_key = False
            return
        if frame[1] > 0:
            self._out.write(self._separator())
        self._newline(len(self._stack))
        frame[1] += 1

    def _after_value(self):
        if not self._stack:
            self._done = True

    def begin_map(self):
        self._before_value()
        self._out.write("{")
        self._stack.append([_MAP, 0])

    def end_map(self):
        self._end(_MAP, "}")

    def begin_list(self):
        self._before_value()
        self._out.write("[")
        self._stack.append([_LIST, 0])

    def end_list(self):
        self._end(_LIST, "]")

    def _end(self, kind: str, closer: str):
        if not self._stack or self._stack[-1][0] != kind or self._pending_key:
            raise ValueError(f"Unbalanced end of {kind}")
        _, count = self._stack.pop()
        if count > 0:
            self._newline(len(self._stack))
        self._out.write(closer)
        self._after_value()

    def key(self, name: str):
        """Write a map key; the next call must write its value."""
        if not self._stack or self._stack[-1][0] != _MAP or self._pending_key:
            raise ValueError(f"Key outside of a map: {name!r}")
        frame = self._stack[-1]
        if frame[1] > 0:
            self._out.write(self._separator())
        self._newline(len(self._stack))
        frame[1] += 1
        self._out.write(json.dumps(name))
        self._out.write(": ")
        self._pending_key = True

    def value(self, scalar: Any):
        """Write a string, number, bool or null."""
        self._before_value()
        self._out.write(json.dumps(scalar))
        self._after_value()

    def getvalue(self) -> str:
        if self._stack:
            raise ValueError("JSON document has unclosed containers")
        return self._out.getvalue()
