from .backup import Backup, BackupService
from .bridge import (
    CrossLanguageBridge,
    FileRegistryStorage,
    FunctionDescriptor,
    MemoryRegistryStorage,
    Outcome,
    RegistryStorage,
)
from .engine import Engine, EngineConfig, Executor
from .lang import (
    Assignment,
    Call,
    FunctionDefinition,
    NotFoundError,
    Return,
    SPUError,
    StorageError,
    Unknown,
    parse_file,
    parse_source,
)
from .store import EventLog, LibraryRegistry, VirtualStore

__all__ = [
    "Assignment",
    "Backup",
    "BackupService",
    "Call",
    "CrossLanguageBridge",
    "Engine",
    "EngineConfig",
    "EventLog",
    "Executor",
    "FileRegistryStorage",
    "FunctionDefinition",
    "FunctionDescriptor",
    "LibraryRegistry",
    "MemoryRegistryStorage",
    "NotFoundError",
    "Outcome",
    "RegistryStorage",
    "Return",
    "SPUError",
    "StorageError",
    "Unknown",
    "VirtualStore",
    "parse_file",
    "parse_source",
]
