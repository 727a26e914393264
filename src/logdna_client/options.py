from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

DEFAULT_INGEST_URL = "https://logs.logdna.com/logs/ingest"
DEFAULT_SEND_TIMEOUT = 30.0
DEFAULT_FLUSH_INTERVAL = 0.25
DEFAULT_MAX_BUFFER_LEN = 50

MAX_OPTION_LENGTH = 32

CONFIG_DIR = Path("_logdna")
CONFIG_FILES = ("config.json", "config.yaml", "config.yml")

_RE_MAC_ADDRESS = re.compile(r"([0-9a-fA-F]{2}:){5}[0-9a-fA-F]{2}")
_RE_HOSTNAME = re.compile(
  r"(([a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])\.)*"
  r"([A-Za-z0-9]|[A-Za-z0-9][A-Za-z0-9-]*[A-Za-z0-9])"
)
_RE_IP_ADDRESS = re.compile(
  r"(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)(\.(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)){3}"
)

_logger = logging.getLogger("logdna_client.options")


class InvalidOptionsError(ValueError):
  """One or more options failed validation."""

  def __init__(self, problems: List[str]) -> None:
    super().__init__(", ".join(problems))
    self.problems = problems


def _problem(option: str, message: str) -> str:
  return f"Options.{option}: {message}"


@dataclass(frozen=True)
class Options:
  """
  Logger-wide or per-message options.

  Empty strings and ``None`` mean "not set" (``index_meta`` included,
  which reads as False when never set): per-message options only
  override the logger options they set (see ``merge``), and unset
  transport settings are filled in by ``with_defaults``. Durations are in
  seconds.
  """

  app: str = ""
  env: str = ""
  level: str = ""
  hostname: str = ""
  ip_address: str = ""
  mac_address: str = ""
  tags: str = ""
  meta: str = ""
  index_meta: Optional[bool] = None
  ingest_url: str = ""
  max_buffer_len: Optional[int] = None
  flush_interval: Optional[float] = None
  send_timeout: Optional[float] = None
  timestamp: Optional[datetime] = None

  def validate(self) -> None:
    """
    Raise ``InvalidOptionsError`` listing every problem found.
    """
    problems: List[str] = []

    for option, value in (
      ("App", self.app),
      ("Env", self.env),
      ("Hostname", self.hostname),
      ("Level", self.level),
    ):
      if len(value) > MAX_OPTION_LENGTH:
        problems.append(_problem(option, f"length must be less than {MAX_OPTION_LENGTH}"))

    if self.mac_address and not _RE_MAC_ADDRESS.fullmatch(self.mac_address):
      problems.append(_problem("MacAddress", "invalid format"))
    if self.hostname and not _RE_HOSTNAME.fullmatch(self.hostname):
      problems.append(_problem("Hostname", "invalid format"))
    if self.ip_address and not _RE_IP_ADDRESS.fullmatch(self.ip_address):
      problems.append(_problem("IPAddress", "invalid format"))

    if self.max_buffer_len is not None and self.max_buffer_len < 1:
      problems.append(_problem("MaxBufferLen", "must be at least 1"))
    if self.flush_interval is not None and self.flush_interval <= 0:
      problems.append(_problem("FlushInterval", "must be positive"))
    if self.send_timeout is not None and self.send_timeout <= 0:
      problems.append(_problem("SendTimeout", "must be positive"))

    if problems:
      raise InvalidOptionsError(problems)

  def merge(self, other: "Options") -> "Options":
    """
    Return a copy with the per-message fields that ``other`` sets.
    """
    merged = self
    if other.app:
      merged = replace(merged, app=other.app)
    if other.env:
      merged = replace(merged, env=other.env)
    if other.level:
      merged = replace(merged, level=other.level)
    if other.meta:
      merged = replace(merged, meta=other.meta)
    if other.index_meta is not None:
      merged = replace(merged, index_meta=other.index_meta)
    if other.timestamp is not None:
      merged = replace(merged, timestamp=other.timestamp)
    return merged

  def with_defaults(self) -> "Options":
    return replace(
      self,
      ingest_url=self.ingest_url or DEFAULT_INGEST_URL,
      max_buffer_len=self.max_buffer_len or DEFAULT_MAX_BUFFER_LEN,
      flush_interval=self.flush_interval or DEFAULT_FLUSH_INTERVAL,
      send_timeout=self.send_timeout or DEFAULT_SEND_TIMEOUT,
    )

  @classmethod
  def from_params_or_env(cls, **params: Any) -> "Options":
    """
    Build options from explicit parameters, falling back to the environment.

    Priority:
      1. Explicit keyword arguments (any ``Options`` field)
      2. ``LOGDNA_*`` environment variables (a ``.env`` file is loaded first)
      3. Project config file (_logdna/config.json or _logdna/config.yaml)
      4. Defaults
    """
    unknown = set(params) - {f.name for f in fields(cls)}
    if unknown:
      raise TypeError(f"Unknown option(s): {', '.join(sorted(unknown))}")

    load_env_file()
    file_config = load_config_file()

    values: Dict[str, Any] = {}
    for name, (env_var, config_key, kind) in _SOURCES.items():
      if params.get(name) not in (None, ""):
        values[name] = params[name]
        continue

      raw = os.getenv(env_var)
      if raw in (None, ""):
        raw = _config_value(file_config, config_key)
      if raw in (None, ""):
        continue
      values[name] = _coerce(name, raw, kind)

    if "timestamp" in params:
      values["timestamp"] = params["timestamp"]

    return cls(**values).with_defaults()


# field -> (environment variable, config file key, kind)
_SOURCES = {
  "app": ("LOGDNA_APP", "app", "str"),
  "env": ("LOGDNA_ENV", "env", "str"),
  "level": ("LOGDNA_LEVEL", "level", "str"),
  "hostname": ("LOGDNA_HOSTNAME", "hostname", "str"),
  "ip_address": ("LOGDNA_IP_ADDRESS", "ipAddress", "str"),
  "mac_address": ("LOGDNA_MAC_ADDRESS", "macAddress", "str"),
  "tags": ("LOGDNA_TAGS", "tags", "str"),
  "meta": ("LOGDNA_META", "meta", "str"),
  "index_meta": ("LOGDNA_INDEX_META", "indexMeta", "bool"),
  "ingest_url": ("LOGDNA_INGEST_URL", "ingestUrl", "str"),
  "max_buffer_len": ("LOGDNA_MAX_BUFFER_LEN", "maxBufferLen", "int"),
  "flush_interval": ("LOGDNA_FLUSH_INTERVAL_MS", "flushIntervalMs", "ms"),
  "send_timeout": ("LOGDNA_SEND_TIMEOUT_MS", "sendTimeoutMs", "ms"),
}


def _snake_case(key: str) -> str:
  return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _config_value(config: Dict[str, Any], key: str) -> Any:
  # Accept both ingestUrl and ingest_url spellings.
  if key in config:
    return config[key]
  return config.get(_snake_case(key))


def _parse_bool(raw: Any) -> Optional[bool]:
  if isinstance(raw, bool):
    return raw
  value = str(raw).strip().lower()
  if value in ("1", "true", "yes", "on"):
    return True
  if value in ("0", "false", "no", "off"):
    return False
  return None


def _coerce(name: str, raw: Any, kind: str) -> Any:
  if kind == "str":
    if isinstance(raw, (dict, list)):
      # Meta given as structured YAML/JSON in a config file.
      return json.dumps(raw)
    return str(raw)
  if kind == "bool":
    parsed = _parse_bool(raw)
    if parsed is None:
      raise InvalidOptionsError([_problem(_option_label(name), f"invalid boolean {raw!r}")])
    return parsed
  try:
    number = int(raw)
  except (TypeError, ValueError):
    raise InvalidOptionsError([_problem(_option_label(name), f"invalid integer {raw!r}")]) from None
  if kind == "ms":
    return number / 1000.0
  return number


def _option_label(name: str) -> str:
  return "".join(part.capitalize() for part in name.split("_"))


def load_env_file() -> None:
  """Load a .env file from the working directory or its parents, if any."""
  path = find_dotenv(usecwd=True)
  if path:
    load_dotenv(path, override=False)


def load_config_file(config_dir: Optional[Path] = None) -> Dict[str, Any]:
  """
  Read the project config file, returning its ``logdna`` section.

  The section may also be the whole document. A missing or unreadable file
  yields an empty dict; unreadable files are logged.
  """
  base = config_dir or CONFIG_DIR
  for name in CONFIG_FILES:
    path = base / name
    if not path.exists():
      continue
    try:
      text = path.read_text()
      if path.suffix == ".json":
        data = json.loads(text)
      else:
        data = yaml.safe_load(text)
    except (OSError, ValueError, yaml.YAMLError) as exc:
      _logger.warning("logdna_client ignoring unreadable config file %s: %s", path, exc)
      return {}
    if not isinstance(data, dict):
      return {}
    section = data.get("logdna", data)
    return section if isinstance(section, dict) else {}
  return {}


def resolve_ingestion_key(key: Optional[str] = None) -> str:
  """
  Find the ingestion key: explicit argument, LOGDNA_INGESTION_KEY, then the
  ``ingestionKey`` entry of the project config file.
  """
  if key:
    return key
  load_env_file()
  resolved = os.getenv("LOGDNA_INGESTION_KEY") or _config_value(load_config_file(), "ingestionKey")
  if not resolved:
    raise InvalidOptionsError([_problem("Key", "ingestion key is required")])
  return str(resolved)
