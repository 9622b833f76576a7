"""Tailer configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from ltsv_tail.ingest.codec import build_field_spec
from ltsv_tail.ingest.dedupe import DuplicatePointsMethod

ENV_PREFIX = "LTSV_"
DEFAULT_CONFIG_PATH = Path("~/.config/ltsv-tail/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("time", "label"): "time_label",
    ("time", "format"): "time_format",
    ("fields", "str"): "str_fields",
    ("fields", "int"): "int_fields",
    ("fields", "float"): "float_fields",
    ("fields", "bool"): "bool_fields",
    ("tags",): "tag_labels",
    ("duplicate_points", "method"): "duplicate_points_method",
    ("duplicate_points", "uniq_tag"): "uniq_tag",
    ("follow", "enabled"): "follow",
    ("follow", "seek_offset"): "seek_offset",
    ("follow", "seek_whence"): "seek_whence",
    ("follow", "reopen"): "reopen",
    ("follow", "must_exist"): "must_exist",
    ("follow", "watch"): "watch",
    ("follow", "pipe"): "pipe",
    ("follow", "max_line_size"): "max_line_size",
    ("follow", "wait_milliseconds"): "wait_milliseconds",
}

# Sections whose values are mappings and must not be flattened.
_MAPPING_KEYS: frozenset[tuple[str, ...]] = frozenset({("default_tags",)})

_LIST_FIELDS = ("str_fields", "int_fields", "float_fields", "bool_fields", "tag_labels")

SAMPLE_CONFIG = """\
## The measurement name
measurement: nginx_access
## An LTSV formatted log file path. Example nginx config:
##
##  log_format  ltsv  'time:$time_iso8601\\t'
##                    'host:$host\\t'
##                    'status:$status\\t'
##                    'body_bytes_sent:$body_bytes_sent\\t'
##                    'request_time:$request_time';
##  access_log  /var/log/nginx/access.ltsv.log  ltsv;
path: /var/log/nginx/access.ltsv.log
time:
  ## Label of the term holding the point timestamp
  label: time
  ## strptime pattern, or "rfc3339" / "iso8601"
  format: "%Y-%m-%dT%H:%M:%S%z"
fields:
  str: []
  ## 64bit signed decimal integers
  int: [body_bytes_sent]
  float: [request_time]
  ## 1, t, T, TRUE, true, True, 0, f, F, FALSE, false, False
  bool: []
tags: [host, status]
## Added to every point unless the line carries the same tag
default_tags:
  log_host: log.example.com
duplicate_points:
  ## add_uniq_tag, increment_time or no_op.
  ## Methods other than no_op need log lines sorted by timestamp.
  method: add_uniq_tag
  ## Only successive duplicates get the tag, the first point is left untouched
  uniq_tag: uniq
follow:
  ## Keep reading as the file grows (tail -f)
  enabled: true
  ## Wait when there is nothing to read. CAUTION: 0 leads to high CPU usage
  wait_milliseconds: 10
  ## Initial position, see os.lseek
  seek_offset: 0
  seek_whence: 0
  ## Reopen the path after rotation (tail -F)
  reopen: true
  ## Fail to start when the file does not exist
  must_exist: true
  ## Wake up on filesystem notifications in addition to the wait interval
  watch: false
  ## The path is a named pipe (mkfifo): no seek and no rotation checks
  pipe: false
  ## If non-zero, split longer lines into multiple lines
  max_line_size: 0
enable_logging: true
"""


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    measurement: str = "ltsv_log"
    path: Path = Path("/var/log/nginx/access.ltsv.log")
    time_label: str = "time"
    time_format: str = "%Y-%m-%dT%H:%M:%S%z"
    str_fields: list[str] = Field(default_factory=list)
    int_fields: list[str] = Field(default_factory=list)
    float_fields: list[str] = Field(default_factory=list)
    bool_fields: list[str] = Field(default_factory=list)
    tag_labels: list[str] = Field(default_factory=list)
    default_tags: dict[str, str] = Field(default_factory=dict)
    wait_milliseconds: int = Field(default=10, ge=0)
    duplicate_points_method: DuplicatePointsMethod = DuplicatePointsMethod.NO_OP
    uniq_tag: str = "uniq"
    seek_offset: int = 0
    seek_whence: int = Field(default=os.SEEK_SET, ge=0, le=2)
    reopen: bool = True
    must_exist: bool = True
    follow: bool = True
    watch: bool = False
    pipe: bool = False
    max_line_size: int = Field(default=0, ge=0)
    enable_logging: bool = True

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("path", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("path must be a path or string")

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if value is None:
            return []
        return value

    @field_validator("duplicate_points_method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return DuplicatePointsMethod.parse(value)
        return value

    @model_validator(mode="after")
    def _check_field_kinds(self) -> "Settings":
        build_field_spec(self.str_fields, self.int_fields, self.float_fields, self.bool_fields)
        return self

    @property
    def wait_seconds(self) -> float:
        return self.wait_milliseconds / 1000

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            if not isinstance(raw, Mapping):
                raise ValueError(f"{config_path}: top level must be a mapping")
            data.update(_flatten_yaml(raw))
        elif path is not None:
            raise FileNotFoundError(f"config file not found: {config_path}")
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping) and next_prefix not in _MAPPING_KEYS:
            flat.update(_flatten_yaml(value, prefix=next_prefix))
            continue
        mapped_key = _YAML_KEY_MAP.get(next_prefix)
        if mapped_key:
            flat[mapped_key] = value
        elif key in Settings.model_fields:
            flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with LTSV_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name == "default_tags":
            overrides[field_name] = _parse_env_tags(value)
        elif field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


def _parse_env_tags(value: str) -> dict[str, str]:
    """Parse ``key=value,key2=value2`` into a tag mapping."""
    tags: dict[str, str] = {}
    for item in value.split(","):
        if not item.strip():
            continue
        key, sep, tag_value = item.partition("=")
        if not sep:
            raise ValueError(f"{ENV_PREFIX}DEFAULT_TAGS entry {item!r} is not key=value")
        tags[key.strip()] = tag_value.strip()
    return tags


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings", "SAMPLE_CONFIG"]
