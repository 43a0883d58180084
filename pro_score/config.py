"""Global configuration for pro-score.

Settings live under ``~/.config/pro-score`` (override with
``PRO_SCORE_HOME``):

    ~/.config/pro-score/config.yaml
    ~/.config/pro-score/registry/instruments/<key>.json
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel

CONFIG_FILENAME = "config.yaml"


class GlobalConfig(BaseModel):
    """Contents of ``config.yaml``."""

    default_registry_path: str | None = None
    log_level: str = "WARNING"
    completed_only: bool = True


def get_pro_score_home() -> Path:
    """Get the pro-score home directory."""
    env_home = os.environ.get("PRO_SCORE_HOME")
    if env_home:
        return Path(env_home)
    return Path.home() / ".config" / "pro-score"


def get_config_path() -> Path:
    return get_pro_score_home() / CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load ``config.yaml``; missing or empty files give the defaults."""
    path = get_config_path()
    if not path.exists():
        return GlobalConfig()
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return GlobalConfig.model_validate(data)


def save_global_config(config: GlobalConfig) -> Path:
    """Write ``config.yaml``, creating the home directory if needed."""
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config.model_dump(exclude_none=True), f, sort_keys=False)
    return path


def get_registry_path() -> Path | None:
    """Resolve the instrument registry directory.

    ``PRO_SCORE_REGISTRY`` wins, then ``default_registry_path`` from
    ``config.yaml``, then ``<home>/registry`` if it exists.
    """
    env_path = os.environ.get("PRO_SCORE_REGISTRY")
    if env_path:
        return Path(env_path)
    global_config = load_global_config()
    if global_config.default_registry_path:
        return Path(global_config.default_registry_path)
    default = get_pro_score_home() / "registry"
    return default if default.exists() else None
