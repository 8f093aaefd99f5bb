"""Runtime configuration.

Values come from an optional JSON file (default ``config/intake.json``),
then environment overrides, then the defaults below.

Example config/intake.json::

    {
        "db_path": "data/lager.db",
        "blob_dir": "data/blobs",
        "identity": "tablet-01",
        "sync_delay_seconds": 1.5,
        "gate": {"min_long_edge": 1500, "min_sharpness": 60}
    }
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional

from .scanner.quality_gate import GateSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "intake.json"

ENV_OVERRIDES = {
    "LAGER_DB_PATH": "db_path",
    "LAGER_BLOB_DIR": "blob_dir",
    "LAGER_LOG_LEVEL": "log_level",
    "LAGER_SYNC_DELAY": "sync_delay_seconds",
    "LAGER_IDENTITY": "identity",
}


@dataclass
class IntakeConfig:
    db_path: str = str(Path("data") / "lager.db")
    blob_dir: str = str(Path("data") / "blobs")
    log_level: str = "INFO"
    identity: str = "local"
    sync_delay_seconds: float = 1.5
    admin_session_minutes: int = 15
    gate: GateSettings = field(default_factory=GateSettings)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _gate_settings(raw: Dict[str, Any]) -> GateSettings:
    known = {f.name for f in fields(GateSettings)}
    unknown = set(raw) - known
    if unknown:
        logger.warning("Ignoring unknown gate settings: %s", ", ".join(sorted(unknown)))
    gate = GateSettings()
    for key in known & set(raw):
        value, default = raw[key], getattr(gate, key)
        if value is None or default is None:
            setattr(gate, key, value)
            continue
        try:
            setattr(gate, key, type(default)(value))
        except (TypeError, ValueError):
            logger.warning("Invalid gate value for %s: %r, keeping %r", key, value, default)
    return gate


def _read_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Could not read config %s, using defaults: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config %s is not a JSON object, using defaults", path)
        return {}
    return data


def load_config(path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> IntakeConfig:
    """
    Build the effective configuration.

    Args:
        path: JSON config file (None = config/intake.json if present)
        env: Environment mapping (None = os.environ)
    """
    env = os.environ if env is None else env
    data = _read_file(Path(path) if path else DEFAULT_CONFIG_PATH)

    for var, key in ENV_OVERRIDES.items():
        if env.get(var):
            data[key] = env[var]

    config = IntakeConfig()
    scalar_fields = {f.name: f for f in fields(IntakeConfig) if f.name != "gate"}
    for key, value in data.items():
        if key == "gate":
            if isinstance(value, dict):
                config.gate = _gate_settings(value)
            continue
        if key not in scalar_fields:
            logger.warning("Ignoring unknown config key: %s", key)
            continue
        default = getattr(config, key)
        try:
            setattr(config, key, type(default)(value))
        except (TypeError, ValueError):
            logger.warning("Invalid value for %s: %r, keeping %r", key, value, default)

    return config
