"""Layered configuration for the CLI and Lambda entry points.

Precedence, lowest to highest: ``config/defaults.yml``, an optional override
file, environment variables, explicit overrides. Secrets Manager payloads
only fill values that are still empty after those layers.
"""
from __future__ import annotations

import json
import os
from copy import deepcopy
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Sequence

import yaml

from clients.secrets_manager import CredentialStore, SecretsManager

from .logging_config import get_logger

__all__ = [
    "ConfigurationError",
    "EodConfig",
    "GitLabSettings",
    "SummarizerSettings",
    "SlackSettings",
    "load_config",
    "build_eod_config",
    "load_eod_config",
    "resolve_author_filter",
]

LOGGER = get_logger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = REPO_ROOT / "config" / "defaults.yml"
DEFAULT_OVERRIDE_PATH = REPO_ROOT / "config" / "settings.yaml"


class ConfigurationError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


_ENVIRONMENT_MAPPINGS: Dict[str, Sequence[str]] = {
    "GITLAB_API": ("gitlab", "api_url"),
    "GITLAB_TOKEN": ("gitlab", "token"),
    "GITLAB_PROJECT_ID": ("gitlab", "project_id"),
    "GITLAB_USER_ID": ("gitlab", "user_id"),
    "GITLAB_EMAIL": ("gitlab", "email"),
    "GITLAB_USERNAME": ("gitlab", "username"),
    "EOD_RECENCY_DAYS": ("gitlab", "recency_days"),
    "EOD_MAX_WORKERS": ("commits", "max_workers"),
    "EOD_HTTP_TIMEOUT": ("http", "timeout_seconds"),
    "EOD_ENABLE_RETRIES": ("http", "retries_enabled"),
    "AI_BASE_URL": ("summarizer", "base_url"),
    "AI_MODEL_NAME": ("summarizer", "model"),
    "AI_API_KEY": ("summarizer", "api_key"),
    "SLACK_BOT_TOKEN": ("slack", "bot_token"),
    "SLACK_USER_ID": ("slack", "user_id"),
    "AWS_REGION": ("aws", "region"),
    "AWS_DEFAULT_REGION": ("aws", "region"),
}

_TRUTHY = {"1", "true", "yes", "on", "y", "t"}
_FALSY = {"0", "false", "no", "off", "n", "f"}


def _load_settings_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    elif suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
    else:
        raise ConfigurationError(f"Unsupported configuration format: {path}")

    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration file {path} must contain a top-level mapping.")
    return dict(data)


def _assign_path(target: MutableMapping[str, Any], path: Sequence[str], value: Any) -> None:
    cursor: MutableMapping[str, Any] = target
    for part in path[:-1]:
        existing = cursor.get(part)
        if not isinstance(existing, MutableMapping):
            existing = {}
            cursor[part] = existing
        cursor = existing
    cursor[path[-1]] = value


def _lookup_path(source: Mapping[str, Any], path: Sequence[str]) -> Any:
    cursor: Any = source
    for part in path:
        if not isinstance(cursor, Mapping):
            return None
        cursor = cursor.get(part)
    return cursor


def _deep_merge(base: MutableMapping[str, Any], updates: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in updates.items():
        if isinstance(value, Mapping):
            existing = base.get(key)
            if isinstance(existing, MutableMapping):
                base[key] = _deep_merge(existing, value)
            else:
                base[key] = _deep_merge({}, value)
        elif isinstance(value, list):
            base[key] = list(value)
        else:
            base[key] = value
    return base


def _environment_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for key, path in _ENVIRONMENT_MAPPINGS.items():
        value = env.get(key)
        if not value:
            continue
        _assign_path(overrides, path, value)
    return overrides


def _parse_bool(raw: Any) -> Optional[bool]:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
    return None


def _should_use_secrets_manager(config: Mapping[str, Any], env: Mapping[str, str]) -> bool:
    env_value = _parse_bool(env.get("EOD_USE_AWS_SECRETS_MANAGER"))
    if env_value is not None:
        return env_value
    return bool(_parse_bool(_lookup_path(config, ("aws", "use_secrets_manager"))))


def _apply_secret_payloads(config: MutableMapping[str, Any], store: CredentialStore) -> None:
    """Fill still-empty dotted config paths from each configured secret."""

    secrets = config.get("secrets")
    if not isinstance(secrets, Mapping):
        return
    for name, spec in secrets.items():
        if not isinstance(spec, Mapping) or not spec.get("arn"):
            continue
        payload = store.get_all_from_secret(str(spec["arn"]))
        if not payload:
            LOGGER.debug("Secret payload empty", extra={"secret_name": name})
            continue
        for dotted, payload_key in (spec.get("values") or {}).items():
            path = str(dotted).split(".")
            if _lookup_path(config, path):
                continue
            value = payload.get(payload_key)
            if value:
                _assign_path(config, path, value)


def load_config(
    path: Optional[str | Path] = None,
    *,
    defaults_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    credential_store: CredentialStore | None = None,
) -> Dict[str, Any]:
    """Load layered configuration as a plain nested mapping."""

    env = os.environ if env is None else env
    config: MutableMapping[str, Any] = {}

    defaults_target = Path(defaults_path) if defaults_path else DEFAULT_CONFIG_PATH
    config = _deep_merge(config, _load_settings_file(defaults_target))

    if path is not None:
        override_target = Path(path)
        if not override_target.exists():
            raise ConfigurationError(f"Configuration file '{override_target}' was not found.")
    else:
        override_target = Path(env.get("EOD_SETTINGS_FILE") or DEFAULT_OVERRIDE_PATH)
    config = _deep_merge(config, _load_settings_file(override_target))

    config = _deep_merge(config, _environment_overrides(env))
    if overrides:
        config = _deep_merge(config, overrides)

    if _should_use_secrets_manager(config, env):
        store = credential_store
        if store is None:
            region = _lookup_path(config, ("aws", "region"))
            store = CredentialStore(secrets_manager=SecretsManager(region_name=region))
        _apply_secret_payloads(config, store)

    return deepcopy(dict(config))


def resolve_author_filter(email: Optional[str], username: Optional[str]) -> str:
    """Return the commit author filter, preferring the verified email."""

    if email:
        return email
    if username:
        return username
    raise ConfigurationError("Either gitlab.email or gitlab.username must be configured.")


@dataclass(frozen=True)
class GitLabSettings:
    api_url: str
    token: str
    project_id: str
    user_id: str
    email: Optional[str] = None
    username: Optional[str] = None
    branches_per_page: int = 200
    commits_per_page: int = 100
    merge_requests_per_page: int = 100
    recency_margin: timedelta = timedelta(days=7)

    @property
    def author_filter(self) -> str:
        return resolve_author_filter(self.email, self.username)


@dataclass(frozen=True)
class SummarizerSettings:
    base_url: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.model and self.api_key)


@dataclass(frozen=True)
class SlackSettings:
    api_url: str = "https://slack.com/api"
    bot_token: Optional[str] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class EodConfig:
    """Explicit settings handed to clients and processors at construction."""

    gitlab: GitLabSettings
    summarizer: SummarizerSettings
    slack: SlackSettings
    timeout_seconds: float = 30.0
    max_workers: int = 1
    retries_enabled: bool = False

    def describe(self) -> Dict[str, str]:
        """Non-secret view of the GitLab settings for debug output."""

        return {
            "gitlabAPI": self.gitlab.api_url,
            "projectId": self.gitlab.project_id,
            "userId": self.gitlab.user_id,
            "email": self.gitlab.email or "not set",
            "username": self.gitlab.username or "not set",
            "authorFilter": self.gitlab.author_filter,
        }


def _as_int(value: Any, name: str, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer (received {value!r}).") from exc


def _as_str(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)


def build_eod_config(data: Mapping[str, Any]) -> EodConfig:
    """Validate a loaded mapping and convert it into :class:`EodConfig`."""

    gitlab = data.get("gitlab") or {}
    required = {
        "gitlab.api_url": gitlab.get("api_url"),
        "gitlab.token": gitlab.get("token"),
        "gitlab.project_id": gitlab.get("project_id"),
        "gitlab.user_id": gitlab.get("user_id"),
    }
    missing = sorted(name for name, value in required.items() if not value)
    if missing:
        raise ConfigurationError("Missing required configuration values: " + ", ".join(missing))

    email = _as_str(gitlab.get("email"))
    username = _as_str(gitlab.get("username"))
    resolve_author_filter(email, username)

    recency_days = _as_int(gitlab.get("recency_days"), "gitlab.recency_days", 7)
    max_workers = _as_int(_lookup_path(data, ("commits", "max_workers")), "commits.max_workers", 1)
    if recency_days < 0 or max_workers < 1:
        raise ConfigurationError("gitlab.recency_days must be >= 0 and commits.max_workers >= 1.")

    timeout_raw = _lookup_path(data, ("http", "timeout_seconds"))
    try:
        timeout_seconds = float(timeout_raw) if timeout_raw not in (None, "") else 30.0
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"http.timeout_seconds must be numeric (received {timeout_raw!r}).") from exc

    retries_raw = _lookup_path(data, ("http", "retries_enabled"))
    retries_enabled = _parse_bool(retries_raw) if retries_raw not in (None, "") else False
    if retries_enabled is None:
        raise ConfigurationError(f"http.retries_enabled must be a boolean (received {retries_raw!r}).")

    summarizer = data.get("summarizer") or {}
    slack = data.get("slack") or {}
    return EodConfig(
        gitlab=GitLabSettings(
            api_url=str(gitlab["api_url"]).rstrip("/"),
            token=str(gitlab["token"]),
            project_id=str(gitlab["project_id"]),
            user_id=str(gitlab["user_id"]),
            email=email,
            username=username,
            branches_per_page=_as_int(gitlab.get("branches_per_page"), "gitlab.branches_per_page", 200),
            commits_per_page=_as_int(gitlab.get("commits_per_page"), "gitlab.commits_per_page", 100),
            merge_requests_per_page=_as_int(
                gitlab.get("merge_requests_per_page"), "gitlab.merge_requests_per_page", 100
            ),
            recency_margin=timedelta(days=recency_days),
        ),
        summarizer=SummarizerSettings(
            base_url=_as_str(summarizer.get("base_url")),
            model=_as_str(summarizer.get("model")),
            api_key=_as_str(summarizer.get("api_key")),
        ),
        slack=SlackSettings(
            api_url=_as_str(slack.get("api_url")) or "https://slack.com/api",
            bot_token=_as_str(slack.get("bot_token")),
            user_id=_as_str(slack.get("user_id")),
        ),
        timeout_seconds=timeout_seconds,
        retries_enabled=retries_enabled,
        max_workers=max_workers,
    )


def load_eod_config(
    path: Optional[str | Path] = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    credential_store: CredentialStore | None = None,
) -> EodConfig:
    """Load and validate configuration in one step."""

    data = load_config(path, env=env, overrides=overrides, credential_store=credential_store)
    return build_eod_config(data)
