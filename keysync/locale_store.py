"""Read and write locale files (``<path>/<locale>.json`` or ``.yml``)."""

import json
import os
import tempfile
from typing import Any, Dict, Tuple

import structlog
import yaml

from .config import SyncConfig
from .exceptions import LocaleFileError

logger = structlog.get_logger()


def locale_file(config: SyncConfig, locale: str) -> str:
    return os.path.join(config.path, f"{locale}{config.extension}")


def read_locale_tree(config: SyncConfig, locale: str) -> Any:
    """Parse one locale file. A missing file is an empty tree.

    Raises:
        LocaleFileError: the file exists but cannot be read or parsed
    """
    filename = locale_file(config, locale)
    if not os.path.exists(filename):
        logger.info("Locale file not found, starting empty", locale=locale, path=filename)
        return {}

    try:
        with open(filename, "r", encoding="utf-8") as f:
            if config.format == "json":
                data = json.load(f)
            else:
                # Use safe_load to prevent arbitrary code execution
                data = yaml.safe_load(f)
    except json.JSONDecodeError as e:
        raise LocaleFileError(locale, filename, f"JSON parsing failed - {e}") from e
    except yaml.YAMLError as e:
        raise LocaleFileError(locale, filename, f"YAML parsing failed - {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise LocaleFileError(locale, filename, str(e)) from e

    # Handle empty YAML files
    if data is None:
        data = {}
    return data


def read_locale_trees(config: SyncConfig) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Load every configured locale.

    Returns:
        (trees, errors): parsed trees by locale, and the reason for each
        locale that could not be loaded
    """
    trees: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
    for locale in config.locales:
        try:
            trees[locale] = read_locale_tree(config, locale)
        except LocaleFileError as e:
            logger.warning("Cannot load locale", locale=locale, path=e.filename, error=e.reason)
            errors[locale] = e.message
    return trees, errors


def dump_locale_tree(tree: Any, locale_format: str = "json") -> str:
    if locale_format == "json":
        return json.dumps(tree, ensure_ascii=False, indent=2) + "\n"
    return yaml.safe_dump(tree, allow_unicode=True, sort_keys=False, default_flow_style=False)


def write_locale_tree(config: SyncConfig, locale: str, tree: Any) -> str:
    """Write a locale tree, replacing the file atomically. Returns the path."""
    filename = locale_file(config, locale)
    os.makedirs(config.path, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=config.path, prefix=f".{locale}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(dump_locale_tree(tree, config.format))
        os.replace(tmp_path, filename)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    logger.info("Locale file written", locale=locale, path=filename)
    return filename
