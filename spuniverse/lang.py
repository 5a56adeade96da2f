from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union


class SPUError(Exception):
    pass


class NotFoundError(SPUError):
    pass


class StorageError(SPUError):
    pass


DECLARATIVE_LANG = "python"
IMPERATIVE_LANG = "javascript"


@dataclass
class FunctionDefinition:
    name: str
    params: List[str] = field(default_factory=list)
    lang: str = DECLARATIVE_LANG


@dataclass
class Assignment:
    variable: str
    value: str
    lang: str = DECLARATIVE_LANG


@dataclass
class Call:
    function: str
    args: List[str] = field(default_factory=list)
    lang: str = IMPERATIVE_LANG


@dataclass
class Return:
    value: str
    lang: str = DECLARATIVE_LANG


@dataclass
class Unknown:
    code: str
    lang: str = IMPERATIVE_LANG


Action = Union[FunctionDefinition, Assignment, Call, Return, Unknown]


DEF_RE = re.compile(r"^def\s+(\w+)\s*\((.*?)\)\s*:")
RETURN_RE = re.compile(r"^return(?:\s+(.*))?$")
CALL_RE = re.compile(r"([A-Za-z_][\w.]*)\((.*?)\)")


def _split_args(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",")]


def parse_line(line: str) -> Action:
    line = line.strip()

    m = DEF_RE.match(line)
    if m:
        params = [p for p in _split_args(m.group(2)) if p]
        return FunctionDefinition(m.group(1), params)

    m = RETURN_RE.match(line)
    if m:
        return Return((m.group(1) or "").strip())

    # '=' wins over a call shape: "x = f(1)" is an assignment.
    if "=" in line:
        variable, _, value = line.partition("=")
        return Assignment(variable.strip(), value.strip())

    m = CALL_RE.search(line)
    if m:
        return Call(m.group(1), _split_args(m.group(2)))

    return Unknown(line)


def parse_source(source: str) -> List[Action]:
    return [parse_line(line) for line in source.splitlines() if line.strip()]


def parse_file(path: str | Path) -> List[Action]:
    return parse_source(Path(path).read_text(encoding="utf-8"))


def action_to_json(action: Action) -> Dict[str, Any]:
    if isinstance(action, FunctionDefinition):
        details: Dict[str, Any] = {"name": action.name, "params": list(action.params), "function": action.name}
        kind = "function_definition"
    elif isinstance(action, Assignment):
        details = {"variable": action.variable, "value": action.value}
        kind = "assignment"
    elif isinstance(action, Call):
        details = {"function": action.function, "args": list(action.args)}
        kind = "call"
    elif isinstance(action, Return):
        details = {"value": action.value}
        kind = "return"
    elif isinstance(action, Unknown):
        details = {"code": action.code}
        kind = "unknown"
    else:
        raise TypeError(action)
    return {"type": kind, "details": details, "lang": action.lang}


def action_from_json(data: Any) -> Action:
    if not isinstance(data, dict):
        return Unknown(str(data))
    kind = data.get("type")
    details = data.get("details") if isinstance(data.get("details"), dict) else {}
    lang = str(data.get("lang") or "")
    try:
        if kind == "function_definition":
            return FunctionDefinition(str(details["name"]), [str(p) for p in details.get("params") or []], lang or DECLARATIVE_LANG)
        if kind == "assignment":
            return Assignment(str(details["variable"]), str(details.get("value", "")), lang or DECLARATIVE_LANG)
        if kind == "call":
            return Call(str(details["function"]), [str(a) for a in details.get("args") or []], lang or IMPERATIVE_LANG)
        if kind == "return":
            return Return(str(details.get("value", "")), lang or DECLARATIVE_LANG)
        if kind == "unknown":
            return Unknown(str(details.get("code", "")), lang or IMPERATIVE_LANG)
    except (KeyError, TypeError):
        pass
    return Unknown(str(details.get("code", data)), lang or IMPERATIVE_LANG)


def describe_action(action: Action) -> str:
    if isinstance(action, FunctionDefinition):
        return f"def {action.name}({', '.join(action.params)})"
    if isinstance(action, Assignment):
        return f"{action.variable} = {action.value}"
    if isinstance(action, Call):
        return f"{action.function}({', '.join(action.args)})"
    if isinstance(action, Return):
        return f"return {action.value}".rstrip()
    if isinstance(action, Unknown):
        return action.code
    raise TypeError(action)
