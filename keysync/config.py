"""
Project configuration.

A config file is YAML, or JSON when its name ends in ``.json``:

    locales: [en, nl]
    defaultLocale: en
    path: src/i18n
    format: json
    scan:
      root: .
      include: ["src/**"]
      exclude: ["**/*.test.ts", "**/__tests__/**"]
      accessors: [t, translate]
      attributes: [i18nKey]
      hardcoded: true

The loaded SyncConfig is passed explicitly to every call that needs it.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import structlog
import yaml

from .exceptions import ConfigError
from .extractor import DEFAULT_ACCESSORS, DEFAULT_ATTRIBUTES

logger = structlog.get_logger()

CONFIG_FILE_NAMES = ("keysync.yml", "keysync.yaml", "keysync.json")
LOCALE_FORMATS = ("json", "yaml")


@dataclass(frozen=True)
class ScanConfig:
    root: str = "."
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    accessors: Tuple[str, ...] = DEFAULT_ACCESSORS
    attributes: Tuple[str, ...] = DEFAULT_ATTRIBUTES
    hardcoded: bool = True


@dataclass(frozen=True)
class SyncConfig:
    locales: Tuple[str, ...]
    default_locale: str
    path: str
    format: str = "json"
    scan: ScanConfig = field(default_factory=ScanConfig)
    # Directory holding the config file, the baseline lives under it
    root: str = "."

    @property
    def extension(self) -> str:
        return ".json" if self.format == "json" else ".yml"


def _string_list(value: Any, name: str, filename: Optional[str]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigError(ConfigError.INVALID_CONFIG, f"'{name}' must be a list of strings", filename)

    items: List[str] = []
    for entry in value:
        if not isinstance(entry, str):
            raise ConfigError(ConfigError.INVALID_CONFIG, f"'{name}' must be a list of strings", filename)
        entry = entry.strip()
        if entry and entry not in items:
            items.append(entry)
    return tuple(items)


def _resolve(base_dir: str, path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.normpath(os.path.join(base_dir, path))


def config_from_dict(data: Any, base_dir: str = ".", filename: Optional[str] = None) -> SyncConfig:
    """Validate a parsed config mapping and build a SyncConfig.

    Relative paths are resolved against ``base_dir``.
    """
    if not isinstance(data, dict):
        raise ConfigError(ConfigError.INVALID_CONFIG, "Config must be a mapping", filename)

    locales = _string_list(data.get("locales"), "locales", filename)
    if not locales:
        raise ConfigError(ConfigError.NO_LOCALES, "Config does not declare any locales", filename)

    default_locale = data.get("defaultLocale", data.get("default_locale", locales[0]))
    if default_locale not in locales:
        raise ConfigError(
            ConfigError.INVALID_CONFIG,
            f"defaultLocale '{default_locale}' is not one of {list(locales)}",
            filename,
        )

    path = data.get("path")
    if not isinstance(path, str) or not path.strip():
        raise ConfigError(ConfigError.INVALID_CONFIG, "'path' must point to the locale directory", filename)

    locale_format = str(data.get("format", "json")).lower()
    if locale_format == "yml":
        locale_format = "yaml"
    if locale_format not in LOCALE_FORMATS:
        raise ConfigError(ConfigError.INVALID_CONFIG, f"Unsupported format '{locale_format}'", filename)

    scan_data = data.get("scan") or {}
    if not isinstance(scan_data, dict):
        raise ConfigError(ConfigError.INVALID_CONFIG, "'scan' must be a mapping", filename)

    hardcoded = scan_data.get("hardcoded", True)
    if not isinstance(hardcoded, bool):
        raise ConfigError(ConfigError.INVALID_CONFIG, "'scan.hardcoded' must be true or false", filename)

    scan = ScanConfig(
        root=_resolve(base_dir, str(scan_data.get("root", "."))),
        include=_string_list(scan_data.get("include"), "scan.include", filename),
        exclude=_string_list(scan_data.get("exclude"), "scan.exclude", filename),
        accessors=_string_list(scan_data.get("accessors"), "scan.accessors", filename) or DEFAULT_ACCESSORS,
        attributes=_string_list(scan_data.get("attributes"), "scan.attributes", filename)
        if "attributes" in scan_data
        else DEFAULT_ATTRIBUTES,
        hardcoded=hardcoded,
    )

    return SyncConfig(
        locales=locales,
        default_locale=default_locale,
        path=_resolve(base_dir, path.strip()),
        format=locale_format,
        scan=scan,
        root=os.path.abspath(base_dir),
    )


def find_config_file(cwd: str = ".") -> Optional[str]:
    for name in CONFIG_FILE_NAMES:
        candidate = os.path.join(cwd, name)
        if os.path.isfile(candidate):
            return os.path.abspath(candidate)
    return None


def load_config(path: Optional[str] = None, cwd: str = ".") -> SyncConfig:
    """Load a config file, or discover one in ``cwd`` when no path is given.

    Raises:
        ConfigError: the file is missing, unparsable or invalid
    """
    filename = path or find_config_file(cwd)
    if not filename or not os.path.isfile(filename):
        raise ConfigError(
            ConfigError.MISSING_CONFIG,
            f"No config file found (looked for {', '.join(CONFIG_FILE_NAMES)})",
            filename,
        )

    try:
        with open(filename, "r", encoding="utf-8") as f:
            if filename.lower().endswith(".json"):
                data: Dict[str, Any] = json.load(f)
            else:
                data = yaml.safe_load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(ConfigError.INVALID_CONFIG, f"Cannot parse config: JSON parsing failed - {e}", filename) from e
    except yaml.YAMLError as e:
        raise ConfigError(ConfigError.INVALID_CONFIG, f"Cannot parse config: YAML parsing failed - {e}", filename) from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(ConfigError.INVALID_CONFIG, f"Cannot read config: {e}", filename) from e

    config = config_from_dict(data, os.path.dirname(os.path.abspath(filename)), filename)
    logger.debug("Config loaded", path=filename, locales=list(config.locales))
    return config
