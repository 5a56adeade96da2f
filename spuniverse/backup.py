from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .bridge import REGISTRY_FILENAME, CrossLanguageBridge, Outcome, now_ms
from .lang import StorageError


@dataclass
class Backup:
    name: str
    path: Path
    created_at: datetime
    size_bytes: int
    source_file_path: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": str(self.path),
            "createdAt": self.created_at.isoformat(),
            "sizeBytes": self.size_bytes,
            "sourceFilePath": self.source_file_path,
        }


def _valid_name(name: str) -> bool:
    return bool(name) and name not in {".", ".."} and "/" not in name and "\\" not in name and ".." not in name


class BackupService:
    def __init__(self, bridge: CrossLanguageBridge, backup_dir: str | Path = "./spu-backups", registry_filename: str = REGISTRY_FILENAME):
        self.bridge = bridge
        self.backup_dir = Path(backup_dir)
        self.registry_filename = registry_filename
        self.events = bridge.events

    def _backup_file(self, name: str) -> Path:
        return self.backup_dir / name / self.registry_filename

    def create_backup(self, name: Optional[str] = None) -> Outcome:
        name = name or f"backup_{now_ms()}"
        if not _valid_name(name):
            return self._fail("backup_failed", name, f"Invalid backup name: {name!r}")
        backup_file = self._backup_file(name)
        if backup_file.exists():
            return self._fail("backup_failed", name, f"Backup '{name}' already exists")
        try:
            backup_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return self._fail("backup_failed", name, str(exc))

        saved = self.bridge.save_to_storage()
        if not saved:
            return self._fail("backup_failed", name, saved.error or "save failed")
        try:
            self.bridge.storage.export_to(backup_file)
        except StorageError as exc:
            return self._fail("backup_failed", name, str(exc))

        self.events.append("backup", name=name, path=str(backup_file))
        return Outcome(True, backup_file)

    def list_backups(self) -> List[Backup]:
        if not self.backup_dir.is_dir():
            return []
        source = str(self.bridge.storage_file) if self.bridge.storage_file else None
        backups: List[Backup] = []
        try:
            candidates = list(self.backup_dir.iterdir())
        except OSError:
            return []
        for item in candidates:
            backup_file = item / self.registry_filename
            if not item.is_dir() or not backup_file.is_file():
                continue
            try:
                stat = backup_file.stat()
            except OSError:
                continue
            backups.append(Backup(
                name=item.name,
                path=backup_file,
                created_at=datetime.fromtimestamp(stat.st_mtime),
                size_bytes=stat.st_size,
                source_file_path=source,
            ))
        backups.sort(key=lambda b: (b.created_at, b.name), reverse=True)
        return backups

    def restore_backup(self, name: str) -> Outcome:
        if not _valid_name(name):
            return self._fail("restore_failed", name, f"Invalid backup name: {name!r}")
        backup_file = self._backup_file(name)
        if not backup_file.is_file():
            return self._fail("restore_failed", name, f"Backup '{name}' not found")
        try:
            self.bridge.storage.import_from(backup_file)
        except StorageError as exc:
            return self._fail("restore_failed", name, str(exc))

        # The live registry is already overwritten at this point.
        loaded = self.bridge.load_from_storage()
        if not loaded:
            return self._fail("restore_failed", name, loaded.error or "reload failed")
        self.events.append("restore", name=name, functions=loaded.value)
        return Outcome(True, loaded.value)

    def _fail(self, kind: str, name: str, error: str) -> Outcome:
        self.events.append(kind, name=name, error=error)
        return Outcome(False, error=error)
