from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventLog:
    def __init__(self, max_events: int = 500):
        self.max_events = max(1, int(max_events))
        self.events: List[Dict[str, Any]] = []

    def append(self, kind: str, **fields: Any) -> Dict[str, Any]:
        payload = {"time": now_iso(), "kind": kind, **copy.deepcopy(fields)}
        self.events.append(payload)
        self.events = self.events[-self.max_events:]
        return payload

    def recent(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        if limit is None:
            return copy.deepcopy(self.events)
        if limit <= 0:
            return []
        return copy.deepcopy(self.events[-int(limit):])

    def kinds(self) -> List[str]:
        return [e["kind"] for e in self.events]


class VirtualStore:
    def __init__(self) -> None:
        self.variables: Dict[str, str] = {}

    def set_variable(self, name: str, value: str) -> None:
        self.variables[name] = value

    def get_variable(self, name: str) -> Optional[str]:
        return self.variables.get(name)

    def status(self) -> Dict[str, Any]:
        return {
            "totalVariables": len(self.variables),
            "variables": [{"key": k, "value": v} for k, v in self.variables.items()],
        }


@dataclass
class Library:
    name: str
    methods: Dict[str, Callable[..., Any]] = field(default_factory=dict)


def _example_method(library_name: str) -> Callable[..., Dict[str, Any]]:
    def example_method(*args: str) -> Dict[str, Any]:
        return {"result": f"Executed {library_name}.exampleMethod with arguments: {', '.join(args)}"}

    return example_method


class LibraryRegistry:
    def __init__(self) -> None:
        self.libraries: Dict[str, Library] = {}

    def load(self, name: str) -> bool:
        """Loads a simulated library; returns False when it was already loaded."""
        if name in self.libraries:
            return False
        self.libraries[name] = Library(name, {"exampleMethod": _example_method(name)})
        return True

    def get(self, name: str) -> Optional[Library]:
        return self.libraries.get(name)

    def is_loaded(self, name: str) -> bool:
        return name in self.libraries

    def loaded(self) -> List[str]:
        return list(self.libraries.keys())
