# Indexer configuration: conf.json plus environment overrides

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = Path("resources/conf.json")


class ConfigError(ValueError):
    """The indexer configuration is missing or invalid."""


# conf.json key -> (field name, type)
_CONFIG_KEYS: dict[str, tuple[str, type]] = {
    "indexName": ("index_name", str),
    "docType": ("doc_type", str),
    "mapping": ("mapping", str),
    "setting": ("setting", str),
    "host": ("host", str),
    "scheme": ("scheme", str),
    "port": ("port", int),
    "shards": ("shards", int),
    "replicas": ("replicas", int),
    "wikiDump": ("wiki_dump", str),
    "insertBulkSize": ("insert_bulk_size", int),
    "normalizeFields": ("normalize_fields", bool),
}

# environment variable -> field name
_ENV_OVERRIDES: dict[str, str] = {
    "WIKI_INDEX_HOST": "host",
    "WIKI_INDEX_PORT": "port",
    "WIKI_INDEX_SCHEME": "scheme",
    "WIKI_INDEX_NAME": "index_name",
    "WIKI_INDEX_DUMP": "wiki_dump",
    "WIKI_INDEX_BULK_SIZE": "insert_bulk_size",
}


@dataclass(frozen=True)
class IndexerConfig:
    index_name: str
    wiki_dump: str
    doc_type: str = "wikipage"
    mapping: str | None = None
    setting: str | None = None
    host: str = "localhost"
    scheme: str = "http"
    port: int = 9200
    shards: int = 1
    replicas: int = 0
    insert_bulk_size: int = 1000
    normalize_fields: bool = True

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    def mapping_content(self) -> dict[str, Any] | None:
        return _read_json_file(self.mapping) if self.mapping else None

    def setting_content(self) -> dict[str, Any]:
        content = _read_json_file(self.setting) if self.setting else {}
        index_settings = dict(content.get("index", {}))
        index_settings.setdefault("number_of_shards", self.shards)
        index_settings.setdefault("number_of_replicas", self.replicas)
        return {**content, "index": index_settings}

    def validate(self) -> "IndexerConfig":
        if not self.index_name:
            raise ConfigError("indexName is required")
        if not self.wiki_dump:
            raise ConfigError("wikiDump is required")
        if self.insert_bulk_size <= 0:
            raise ConfigError(f"insertBulkSize must be positive, got {self.insert_bulk_size}")
        if self.scheme not in ("http", "https"):
            raise ConfigError(f"Unsupported scheme: {self.scheme}")
        return self


def _read_json_file(path: str) -> dict[str, Any]:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read JSON file {path}: {exc}") from exc


def _coerce(key: str, value: Any, kind: type) -> Any:
    if kind is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes", "false", "0", "no"):
            return value.strip().lower() in ("true", "1", "yes")
        raise ConfigError(f"{key} must be a boolean, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be {kind.__name__}, got {value!r}") from exc


def config_from_dict(raw: dict[str, Any]) -> IndexerConfig:
    values: dict[str, Any] = {}
    for key, (field_name, kind) in _CONFIG_KEYS.items():
        if raw.get(key) is not None:
            values[field_name] = _coerce(key, raw[key], kind)
    if "index_name" not in values or "wiki_dump" not in values:
        raise ConfigError("Configuration must define indexName and wikiDump")
    return IndexerConfig(**values)


def apply_env_overrides(config: IndexerConfig, environ: dict[str, str] | None = None) -> IndexerConfig:
    environ = os.environ if environ is None else environ
    field_types = {field_name: kind for field_name, kind in _CONFIG_KEYS.values()}
    overrides: dict[str, Any] = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            overrides[field_name] = _coerce(env_name, value, field_types[field_name])
    return replace(config, **overrides) if overrides else config


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> IndexerConfig:
    load_dotenv()
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid configuration file {config_path}: {exc}") from exc
    config = apply_env_overrides(config_from_dict(raw))
    # mapping/setting paths are relative to the configuration file.
    resolved = {
        name: str(config_path.parent / value)
        for name, value in (("mapping", config.mapping), ("setting", config.setting))
        if value and not Path(value).is_absolute()
    }
    return replace(config, **resolved).validate() if resolved else config.validate()
