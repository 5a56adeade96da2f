from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .backup import BackupService
from .bridge import REGISTRY_FILENAME, CrossLanguageBridge, RegistryStorage, now_ms
from .lang import (
    IMPERATIVE_LANG,
    Action,
    Assignment,
    Call,
    FunctionDefinition,
    Return,
    SPUError,
    Unknown,
    parse_source,
)
from .store import EventLog, LibraryRegistry, VirtualStore

PRINT_ALIASES = {"print", "console.log"}

Confirm = Callable[[str], Optional[str]]


@dataclass
class EngineConfig:
    storage_dir: str = "./spu-bridge-storage"
    backup_dir: str = "./spu-backups"
    registry_filename: str = REGISTRY_FILENAME
    events_max: int = 500
    preview_chars: int = 100
    confirm_token: str = "CONFIRM"

    @classmethod
    def from_env(cls, **overrides: Any) -> "EngineConfig":
        cfg = cls(
            storage_dir=os.environ.get("SPU_STORAGE_DIR", cls.storage_dir),
            backup_dir=os.environ.get("SPU_BACKUP_DIR", cls.backup_dir),
        )
        raw_max = os.environ.get("SPU_EVENTS_MAX")
        if raw_max:
            try:
                cfg.events_max = max(1, int(raw_max))
            except ValueError:
                pass
        for key, value in overrides.items():
            if value is not None:
                setattr(cfg, key, value)
        return cfg


class Executor:
    def __init__(self, store: VirtualStore, libraries: LibraryRegistry, bridge: CrossLanguageBridge, preview_chars: int = 100):
        self.store = store
        self.libraries = libraries
        self.bridge = bridge
        self.preview_chars = preview_chars

    def execute(self, action: Action, lang: str, out: List[str]) -> None:
        try:
            if isinstance(action, FunctionDefinition):
                self.bridge.register_function(action.name, lang, action.params, [])
                out.append(f"Function '{action.name}' registered ({lang})")
            elif isinstance(action, Assignment):
                out.append(f"  ASSIGN: {action.variable} = {action.value}")
                self.store.set_variable(action.variable, action.value)
            elif isinstance(action, Call):
                out.append(f"  CALL: {action.function}({', '.join(action.args)})")
                self._call(action, out)
            elif isinstance(action, Return):
                out.append(f"  RETURN: {action.value}")
            elif isinstance(action, Unknown):
                out.append(f"  Unknown action: {action.code}")
            else:
                raise TypeError(action)
        except Exception as exc:
            out.append(f"Error executing action: {exc}")

    def _call(self, action: Call, out: List[str]) -> None:
        lib_name, _, method_name = action.function.partition(".")
        if self.libraries.is_loaded(lib_name):
            library = self.libraries.get(lib_name)
            method = library.methods.get(method_name) if library and method_name else None
            if method is not None:
                result = method(*action.args)
                out.append(f"    Result: {json.dumps(result, ensure_ascii=False)[:self.preview_chars]}")
        elif self.bridge.has_function(action.function):
            try:
                trace: List[str] = []
                result = self.bridge.call_function(action.function, action.args, trace)
                out.extend(f"    {line}" for line in trace)
                out.append(f"    Cross-language result: {json.dumps(result, ensure_ascii=False)}")
            except SPUError as exc:
                out.append(f"    Bridge error: {exc}")
        elif action.function in PRINT_ALIASES:
            out.append(f"    OUTPUT: {action.args[0] if action.args else ''}")
        else:
            out.append(f"    Function '{action.function}' not found")


HELP_TEXT = """Commands:
  load <lib>               Load a simulated library
  status                   Show virtual memory and loaded libraries
  simulate <code...>       Parse and simulate code
  run-file <path>          Simulate the contents of a file
  bridge-list              List registered bridge functions
  bridge-stats             Show bridge statistics
  bridge-clear             Remove every bridge function (asks for confirmation)
  bridge-remove <name>     Remove one bridge function
  bridge-save              Persist the bridge registry
  bridge-backup [name]     Back up the bridge registry
  bridge-restore <name>    Restore the bridge registry from a backup
  bridge-list-backups      List available backups
  help                     Show this help"""


class Engine:
    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        storage: Optional[RegistryStorage] = None,
        confirm: Optional[Confirm] = None,
    ):
        self.config = config or EngineConfig()
        self.events = EventLog(self.config.events_max)
        self.store = VirtualStore()
        self.libraries = LibraryRegistry()
        self.bridge = CrossLanguageBridge(
            storage=storage,
            storage_dir=self.config.storage_dir,
            events=self.events,
            registry_filename=self.config.registry_filename,
        )
        self.backups = BackupService(self.bridge, self.config.backup_dir, self.config.registry_filename)
        self.executor = Executor(self.store, self.libraries, self.bridge, self.config.preview_chars)
        self.confirm = confirm
        self.commands: Dict[str, Callable[[str, List[str]], None]] = {
            "load": self.cmd_load,
            "status": self.cmd_status,
            "simulate": self.cmd_simulate,
            "run-file": self.cmd_run_file,
            "bridge-list": self.cmd_bridge_list,
            "bridge-stats": self.cmd_bridge_stats,
            "bridge-clear": self.cmd_bridge_clear,
            "bridge-remove": self.cmd_bridge_remove,
            "bridge-save": self.cmd_bridge_save,
            "bridge-backup": self.cmd_bridge_backup,
            "bridge-restore": self.cmd_bridge_restore,
            "bridge-list-backups": self.cmd_bridge_list_backups,
            "help": self.cmd_help,
        }
        self._confirm_override: Optional[Confirm] = None

    def run_command(self, text: str, confirm: Optional[Confirm] = None) -> str:
        parts = text.strip().split(None, 1)
        if not parts:
            return ""
        verb = parts[0]
        arg = parts[1] if len(parts) > 1 else ""
        out: List[str] = []
        handler = self.commands.get(verb)
        if handler is None:
            out.append(f"Command not recognized: {text.strip()}")
            return "\n".join(out)

        self.events.append("command", verb=verb)
        self._confirm_override = confirm
        try:
            handler(arg, out)
        except Exception as exc:
            out.append(f"Error executing command '{verb}': {exc}")
        finally:
            self._confirm_override = None
        return "\n".join(out)

    def simulate(self, code: str, out: List[str]) -> None:
        out.append(f"Simulating code: {code}")
        for action in parse_source(code):
            self.executor.execute(action, action.lang or IMPERATIVE_LANG, out)

    def cmd_load(self, arg: str, out: List[str]) -> None:
        names = arg.split()
        if not names:
            out.append("Usage: load <library_name>")
            return
        lib = names[0]
        if self.libraries.load(lib):
            out.append(f"Library '{lib}' loaded")
        else:
            out.append(f"Library '{lib}' is already loaded")

    def cmd_status(self, arg: str, out: List[str]) -> None:
        out.append(json.dumps(self.store.status(), indent=2, ensure_ascii=False))
        loaded = self.libraries.loaded()
        out.append(f"Loaded libraries: {', '.join(loaded) if loaded else 'none'}")

    def cmd_simulate(self, arg: str, out: List[str]) -> None:
        self.simulate(arg, out)

    def cmd_run_file(self, arg: str, out: List[str]) -> None:
        path = arg.strip()
        if not path:
            out.append("Usage: run-file <path>")
            return
        try:
            code = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            out.append(f"Cannot read file '{path}': {exc}")
            return
        self.simulate(code, out)

    def cmd_bridge_list(self, arg: str, out: List[str]) -> None:
        functions = self.bridge.list_functions()
        if not functions:
            out.append("No functions registered")
            return
        for f in functions:
            out.append(f"{f['name']}({f['params']}) [{f['lang']}] calls={f['callCount']} last={f['lastCalled']}")

    def cmd_bridge_stats(self, arg: str, out: List[str]) -> None:
        stats = self.bridge.get_stats()
        out.append("CROSS-LANGUAGE BRIDGE STATISTICS")
        out.append("=" * 50)
        out.append(f"Total functions: {stats['totalFunctions']}")
        out.append("By language:")
        for lang, count in stats["byLanguage"].items():
            out.append(f"   {lang}: {count} functions")
        out.append("Most called:")
        for i, f in enumerate(stats["mostCalled"][:5], start=1):
            out.append(f"   {i}. {f['name']} ({f['lang']}): {f['calls']} calls")

    def cmd_bridge_clear(self, arg: str, out: List[str]) -> None:
        prompt = f'Remove ALL bridge functions? Type "{self.config.confirm_token}" to proceed:'
        confirm = self._confirm_override or self.confirm
        answer = confirm(prompt) if confirm is not None else None
        if answer != self.config.confirm_token:
            out.append("Operation cancelled")
            return
        count = self.bridge.clear_registry()
        out.append(f"{count} functions removed from the bridge")

    def cmd_bridge_remove(self, arg: str, out: List[str]) -> None:
        name = arg.strip()
        if not name:
            out.append("Usage: bridge-remove <function_name>")
            return
        if self.bridge.unregister_function(name):
            out.append(f"Function '{name}' removed from the bridge")
        else:
            out.append(f"Function '{name}' not found")

    def cmd_bridge_save(self, arg: str, out: List[str]) -> None:
        saved = self.bridge.save_to_storage()
        if saved:
            out.append("Bridge state saved")
        else:
            out.append(f"Bridge save failed: {saved.error}")

    def cmd_bridge_backup(self, arg: str, out: List[str]) -> None:
        name = arg.strip() or f"manual_{now_ms()}"
        created = self.backups.create_backup(name)
        if created:
            out.append(f"Backup created: {name}")
        else:
            out.append(f"Backup failed: {created.error}")

    def cmd_bridge_restore(self, arg: str, out: List[str]) -> None:
        name = arg.strip()
        if not name:
            out.append("Usage: bridge-restore <backup_name>")
            return
        restored = self.backups.restore_backup(name)
        if restored:
            out.append(f"Backup '{name}' restored ({restored.value} functions)")
        else:
            out.append(f"Restore failed: {restored.error}")

    def cmd_bridge_list_backups(self, arg: str, out: List[str]) -> None:
        backups = self.backups.list_backups()
        out.append("AVAILABLE BACKUPS:")
        out.append("=" * 50)
        if not backups:
            out.append("   No backups found")
            return
        for i, b in enumerate(backups, start=1):
            out.append(f"{i}. {b.name}")
            out.append(f"   {b.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
            out.append(f"   {round(b.size_bytes / 1024)} KB")

    def cmd_help(self, arg: str, out: List[str]) -> None:
        out.append(HELP_TEXT)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "memory": self.store.status(),
            "libraries": self.libraries.loaded(),
            "functions": self.bridge.list_functions(),
            "stats": self.bridge.get_stats(),
            "events": self.events.recent(200),
        }

    def export_json(self, path: str | Path) -> Path:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(self.snapshot(), indent=2, ensure_ascii=False), encoding="utf-8")
        return out
