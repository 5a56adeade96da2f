from __future__ import annotations

import json
import re
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .lang import (
    DECLARATIVE_LANG,
    IMPERATIVE_LANG,
    Action,
    Assignment,
    Call,
    NotFoundError,
    Return,
    StorageError,
    action_from_json,
    action_to_json,
    describe_action,
)
from .store import EventLog, now_iso

REGISTRY_FILENAME = "bridge-registry.json"
PRINT_TOKENS = ("print", "console.log")

BINARY_RE = re.compile(r"([A-Za-z_]\w*|\d+(?:\.\d+)?)\s*([+*])\s*([A-Za-z_]\w*|\d+(?:\.\d+)?)")


def now_ms() -> int:
    return int(time.time() * 1000)


def _number(value: float) -> int | float:
    return int(value) if value.is_integer() else value


@dataclass
class Outcome:
    ok: bool
    value: Any = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


class RegistryStorage:
    """Storage port for the serialized registry; subclasses pick the medium."""

    path: Optional[Path] = None

    def read_text(self) -> Optional[str]:
        raise NotImplementedError

    def write_text(self, text: str) -> None:
        raise NotImplementedError

    def export_to(self, dest: Path) -> None:
        raise NotImplementedError

    def import_from(self, src: Path) -> None:
        raise NotImplementedError


class FileRegistryStorage(RegistryStorage):
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read_text(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot read registry {self.path}: {exc}") from exc

    def write_text(self, text: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot write registry {self.path}: {exc}") from exc

    def export_to(self, dest: Path) -> None:
        try:
            shutil.copy2(self.path, dest)
        except OSError as exc:
            raise StorageError(f"Cannot copy registry to {dest}: {exc}") from exc

    def import_from(self, src: Path) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, self.path)
        except OSError as exc:
            raise StorageError(f"Cannot copy {src} over registry: {exc}") from exc


class MemoryRegistryStorage(RegistryStorage):
    def __init__(self, text: Optional[str] = None):
        self.text = text
        self.writes = 0

    def read_text(self) -> Optional[str]:
        return self.text

    def write_text(self, text: str) -> None:
        self.text = text
        self.writes += 1

    def export_to(self, dest: Path) -> None:
        if self.text is None:
            raise StorageError("Registry has never been saved")
        try:
            Path(dest).write_text(self.text, encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot write backup {dest}: {exc}") from exc

    def import_from(self, src: Path) -> None:
        try:
            self.text = Path(src).read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot read backup {src}: {exc}") from exc
        self.writes += 1


@dataclass
class FunctionDescriptor:
    name: str
    lang: str
    params: List[str] = field(default_factory=list)
    body_actions: List[Action] = field(default_factory=list)
    registered_at: int = 0
    last_called: Optional[int] = None
    call_count: int = 0

    @property
    def timestamp(self) -> int:
        return self.last_called if self.last_called is not None else self.registered_at

    def to_json(self) -> Dict[str, Any]:
        return {
            "lang": self.lang,
            "params": list(self.params),
            "bodyActions": [action_to_json(a) for a in self.body_actions],
            "timestamp": self.timestamp,
            "registeredAt": self.registered_at,
            "lastCalled": self.last_called,
            "callCount": self.call_count,
        }

    @classmethod
    def from_json(cls, name: str, data: Any) -> "FunctionDescriptor":
        if not isinstance(data, dict):
            raise ValueError(f"Descriptor for '{name}' must be an object")
        params = data.get("params") or []
        body = data.get("bodyActions") or []
        if not isinstance(params, list) or not isinstance(body, list):
            raise ValueError(f"Descriptor for '{name}' has malformed params or bodyActions")
        call_count = int(data.get("callCount") or 0)
        if call_count < 0:
            raise ValueError(f"Descriptor for '{name}' has a negative callCount")
        timestamp = int(data.get("timestamp") or now_ms())
        last_called = data.get("lastCalled")
        if last_called is None and "lastCalled" not in data and call_count > 0:
            last_called = timestamp
        return cls(
            name=name,
            lang=str(data.get("lang") or ""),
            params=[str(p) for p in params],
            body_actions=[action_from_json(a) for a in body],
            registered_at=int(data.get("registeredAt") or timestamp),
            last_called=int(last_called) if last_called is not None else None,
            call_count=call_count,
        )


class CrossLanguageBridge:
    def __init__(
        self,
        storage: Optional[RegistryStorage] = None,
        storage_dir: str | Path = "./spu-bridge-storage",
        events: Optional[EventLog] = None,
        registry_filename: str = REGISTRY_FILENAME,
        autoload: bool = True,
    ):
        self.storage = storage if storage is not None else FileRegistryStorage(Path(storage_dir) / registry_filename)
        self.events = events if events is not None else EventLog()
        self.functions: Dict[str, FunctionDescriptor] = {}
        if autoload:
            self.load_from_storage()

    @property
    def storage_file(self) -> Optional[Path]:
        return self.storage.path

    def load_from_storage(self) -> Outcome:
        try:
            text = self.storage.read_text()
            if text is None:
                raise StorageError("Registry file not found")
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("Registry must be a JSON object")
            loaded = {str(name): FunctionDescriptor.from_json(str(name), d) for name, d in data.items()}
        except (StorageError, ValueError, TypeError, OverflowError, RecursionError) as exc:
            self.functions.clear()
            self.events.append("load_failed", error=str(exc))
            return Outcome(False, error=str(exc))
        self.functions = loaded
        self.events.append("load", functions=len(loaded))
        return Outcome(True, len(loaded))

    def save_to_storage(self) -> Outcome:
        registry = {name: d.to_json() for name, d in self.functions.items()}
        try:
            self.storage.write_text(json.dumps(registry, indent=2, ensure_ascii=False))
        except StorageError as exc:
            self.events.append("save_failed", error=str(exc))
            return Outcome(False, error=str(exc))
        self.events.append("save", functions=len(registry))
        return Outcome(True, len(registry))

    def register_function(
        self,
        name: str,
        lang: str,
        params: Optional[Sequence[str]] = None,
        body_actions: Optional[Sequence[Action]] = None,
    ) -> bool:
        self.functions[name] = FunctionDescriptor(
            name=name,
            lang=lang,
            params=list(params or []),
            body_actions=list(body_actions or []),
            registered_at=now_ms(),
        )
        self.events.append("register", name=name, lang=lang)
        self.save_to_storage()
        return True

    def unregister_function(self, name: str) -> bool:
        if name not in self.functions:
            return False
        del self.functions[name]
        self.events.append("unregister", name=name)
        self.save_to_storage()
        return True

    def clear_registry(self) -> int:
        count = len(self.functions)
        self.functions.clear()
        self.events.append("clear", removed=count)
        self.save_to_storage()
        return count

    def has_function(self, name: str) -> bool:
        return name in self.functions

    def list_functions(self) -> List[Dict[str, Any]]:
        out = []
        for name, d in self.functions.items():
            last = "never"
            if d.last_called is not None:
                last = datetime.fromtimestamp(d.last_called / 1000).strftime("%H:%M:%S")
            out.append({
                "name": name,
                "lang": d.lang,
                "params": ", ".join(d.params),
                "callCount": d.call_count,
                "lastCalled": last,
            })
        return out

    def call_function(self, name: str, args: Sequence[Any] = (), trace: Optional[List[str]] = None) -> Dict[str, Any]:
        if not self.has_function(name):
            raise NotFoundError(f"Function '{name}' not found in bridge.")
        func = self.functions[name]
        args = [str(a) for a in args]

        func.call_count += 1
        func.last_called = max(func.last_called or 0, now_ms())
        self.save_to_storage()
        self.events.append("call", name=name, lang=func.lang, calls=func.call_count)

        lines = trace if trace is not None else []
        lines.append(f"Calling '{name}' ({func.lang}) with args: [{', '.join(args)}]")
        lines.append(f"  Stats: {func.call_count} calls")
        result = self._simulate(func, args, lines)
        lines.append(f"  Simulated return ({func.lang}): {json.dumps(result, ensure_ascii=False)}")
        return result

    def _simulate(self, func: FunctionDescriptor, args: List[str], lines: List[str]) -> Dict[str, Any]:
        last_value: Any = None
        lines.append(f"  Executing {len(func.body_actions)} actions in {func.lang}:")
        for action in func.body_actions:
            lines.append(f"    -> {describe_action(action)}")
            if isinstance(action, (Assignment, Return)):
                computed = self._binary_value(action.value, func.params, args)
                if computed is not None:
                    last_value = computed
            elif isinstance(action, Call):
                if any(token in action.function for token in PRINT_TOKENS):
                    last_value = f"Output: {', '.join(args)}"
        return self._result_record(func.lang, last_value, args)

    def _binary_value(self, expr: str, params: List[str], args: List[str]) -> Optional[int | float]:
        m = BINARY_RE.search(expr)
        if not m or len(args) < 2:
            return None
        left = self._operand(m.group(1), 0, params, args)
        right = self._operand(m.group(3), 1, params, args)
        try:
            a, b = float(left), float(right)
        except ValueError:
            return None
        return _number(a + b if m.group(2) == "+" else a * b)

    def _operand(self, token: str, position: int, params: List[str], args: List[str]) -> str:
        if token in params and params.index(token) < len(args):
            return args[params.index(token)]
        return args[position]

    def _result_record(self, lang: str, last_value: Any, args: List[str]) -> Dict[str, Any]:
        value = last_value if last_value is not None else f"result_{lang}_{now_ms()}"
        result: Dict[str, Any] = {
            "value": value,
            "simulated": True,
            "language": lang,
            "timestamp": now_iso(),
            "argsReceived": list(args),
        }
        if lang == DECLARATIVE_LANG:
            result["type"] = "python_result"
            result["representation"] = "{" + " + ".join(args) + "} → " + str(value)
        elif lang == IMPERATIVE_LANG:
            result["type"] = "js_result"
            result["representation"] = f"function({', '.join(args)}) → {value}"
        return result

    def get_stats(self) -> Dict[str, Any]:
        by_language: Dict[str, int] = {}
        most_called = []
        recent = []
        for name, d in self.functions.items():
            by_language[d.lang] = by_language.get(d.lang, 0) + 1
            most_called.append({"name": name, "calls": d.call_count, "lang": d.lang})
            recent.append({"name": name, "timestamp": d.timestamp, "lang": d.lang})
        most_called.sort(key=lambda x: x["calls"], reverse=True)
        recent.sort(key=lambda x: x["timestamp"], reverse=True)
        return {
            "totalFunctions": len(self.functions),
            "byLanguage": by_language,
            "mostCalled": most_called,
            "recentFunctions": recent,
        }
