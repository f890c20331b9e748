"""
Configuration for the Engram codec and file helpers.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "engram" / "config.json"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class EngramConfig:
    """
    Codec behaviour switches.

    verify_integrity only affects whole-buffer decode; streaming decode never
    verifies because the digest spans the full payload.
    """

    default_version: str = "1.0"
    verify_integrity: bool = True
    atomic_writes: bool = True
    file_mode: int = 0o644

    @classmethod
    def from_env(cls, base: EngramConfig | None = None) -> EngramConfig:
        """Apply ENGRAM_* environment overrides on top of ``base``."""
        base = base or cls()
        return cls(
            default_version=os.environ.get("ENGRAM_DEFAULT_VERSION", base.default_version),
            verify_integrity=_env_bool("ENGRAM_VERIFY_INTEGRITY", base.verify_integrity),
            atomic_writes=_env_bool("ENGRAM_ATOMIC_WRITES", base.atomic_writes),
            file_mode=base.file_mode,
        )

    @classmethod
    def load(cls, path: Path | None = None) -> EngramConfig:
        """Load configuration from a JSON file, falling back to defaults."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        # file_mode may be written as an octal string, e.g. "600"
        file_mode = data.get("file_mode", cls.file_mode)
        if isinstance(file_mode, str):
            file_mode = int(file_mode, 8)

        return cls(
            default_version=data.get("default_version", cls.default_version),
            verify_integrity=data.get("verify_integrity", cls.verify_integrity),
            atomic_writes=data.get("atomic_writes", cls.atomic_writes),
            file_mode=file_mode,
        )

    def save(self, path: Path | None = None) -> None:
        """Save configuration to a JSON file."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        data["file_mode"] = oct(self.file_mode)[2:]
        with open(path, "w") as f:
            json.dump(data, f, indent=2)


# Default configuration instance
default_config = EngramConfig()
