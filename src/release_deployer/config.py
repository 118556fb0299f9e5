"""Configuration loading utilities for release-deployer."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = Path("config/default_config.json")


@dataclass
class DeploymentConfig:
    """What to deploy and where."""

    deploy_to: Optional[str] = None
    repo: Optional[str] = None
    revision: str = "HEAD"
    runtime: Optional[str] = None          # e.g. "3.0.0@app"
    user: Optional[str] = None
    group: Optional[str] = None
    migrate: bool = False
    migration_command: str = "bundle exec rake db:migrate"
    precompile_assets: bool = False
    environment: Dict[str, str] = field(default_factory=dict)
    keep_releases: int = 5
    restart_command: Optional[str] = None  # None: touch tmp/restart.txt
    symlinks: Dict[str, str] = field(
        default_factory=lambda: {"system": "public/system", "pids": "tmp/pids", "log": "log"}
    )
    symlink_before_migrate: Dict[str, str] = field(
        default_factory=lambda: {"config/database.yml": "config/database.yml"}
    )
    purge_before_symlink: List[str] = field(
        default_factory=lambda: ["log", "tmp/pids", "public/system"]
    )
    create_dirs_before_symlink: List[str] = field(
        default_factory=lambda: ["tmp", "public", "config"]
    )
    # hook name -> shell commands run in the release directory
    hooks: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class RuntimeConfig:
    """RVM installation the releases run on."""

    rvm_root_path: str = "/usr/local/rvm"
    marker_file: str = ".rvmrc"
    bundle_without: str = "development test assets"


@dataclass
class NotifyConfig:
    """Airbrake deploy notifications."""

    enabled: bool = False
    api_key: Optional[str] = None
    project_id: Optional[str] = None
    host: str = "https://api.airbrake.io"
    proxy: Optional[str] = None  # e.g. "http://127.0.0.1:7890"
    timeout: int = 10


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    """Top-level configuration."""

    deployment: DeploymentConfig = field(default_factory=DeploymentConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        def section(name: str) -> Dict[str, Any]:
            data = payload.get(name, {}) or {}
            # keys starting with "_" are comments
            return {k: v for k, v in data.items() if not k.startswith("_")}

        return cls(
            deployment=DeploymentConfig(**{**DeploymentConfig().__dict__, **section("deployment")}),
            runtime=RuntimeConfig(**{**RuntimeConfig().__dict__, **section("runtime")}),
            notify=NotifyConfig(**{**NotifyConfig().__dict__, **section("notify")}),
            logging=LoggingConfig(**{**LoggingConfig().__dict__, **section("logging")}),
        )


_ENV_OVERRIDES = (
    ("RELEASE_DEPLOYER_DEPLOY_TO", "deployment", "deploy_to"),
    ("RELEASE_DEPLOYER_REPO", "deployment", "repo"),
    ("RELEASE_DEPLOYER_REVISION", "deployment", "revision"),
    ("RELEASE_DEPLOYER_RUNTIME", "deployment", "runtime"),
    ("RELEASE_DEPLOYER_USER", "deployment", "user"),
    ("RELEASE_DEPLOYER_RVM_ROOT", "runtime", "rvm_root_path"),
    ("RELEASE_DEPLOYER_AIRBRAKE_API_KEY", "notify", "api_key"),
    ("RELEASE_DEPLOYER_AIRBRAKE_PROJECT_ID", "notify", "project_id"),
    ("RELEASE_DEPLOYER_NOTIFY_PROXY", "notify", "proxy"),
    ("RELEASE_DEPLOYER_LOG_LEVEL", "logging", "level"),
)


def apply_env_overrides(config: AppConfig) -> AppConfig:
    for env_name, section_name, attribute in _ENV_OVERRIDES:
        value = os.getenv(env_name)
        if value:
            setattr(getattr(config, section_name), attribute, value)

    # an API key on its own is enough to switch notifications on
    if os.getenv("RELEASE_DEPLOYER_AIRBRAKE_API_KEY") and config.notify.project_id:
        config.notify.enabled = True
    return config


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    Environment variables (higher priority than config file):
    - RELEASE_DEPLOYER_DEPLOY_TO / _REPO / _REVISION / _RUNTIME / _USER: deployment target
    - RELEASE_DEPLOYER_RVM_ROOT: RVM installation root
    - RELEASE_DEPLOYER_AIRBRAKE_API_KEY / _AIRBRAKE_PROJECT_ID: deploy notifications
    - RELEASE_DEPLOYER_NOTIFY_PROXY: HTTP proxy for notifications
    - RELEASE_DEPLOYER_LOG_LEVEL: logging level
    """

    candidate_paths = []
    if path:
        candidate_paths.append(Path(path))
    candidate_paths.append(_DEFAULT_CONFIG_PATH)

    for candidate in candidate_paths:
        if candidate.is_file():
            with candidate.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            return apply_env_overrides(AppConfig.from_dict(data))

    raise FileNotFoundError(
        f"Could not find configuration file. Looked in: {', '.join(str(p) for p in candidate_paths)}"
    )
