"""
Pytest fixtures for keysync tests.
"""

import json
from pathlib import Path

import pytest

from keysync.config import config_from_dict


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small project with two locales and a handful of source files."""
    write(
        tmp_path / "src" / "pages" / "LoginPage.tsx",
        'export const Login = () => <h1>{t("auth.login.title")}</h1>;\n'
        'const label = translate("dash" + "board");\n',
    )
    write(
        tmp_path / "src" / "hooks" / "useLabels.ts",
        'export const labels = () => [t("common.save"), t(\'common.cancel\')];\n',
    )
    write(tmp_path / "src" / "pages" / "LoginPage.test.tsx", 't("only.in.tests");\n')
    write(tmp_path / "node_modules" / "lib" / "index.js", 't("vendored.key");\n')
    write(
        tmp_path / "src" / "i18n" / "en.json",
        json.dumps(
            {
                "auth": {"login": {"title": "Sign in"}},
                "common": {"save": "Save", "cancel": "Cancel", "legacy": "Old"},
            },
            indent=2,
        ),
    )
    write(
        tmp_path / "src" / "i18n" / "nl.json",
        json.dumps({"auth": {"login": {"title": "Inloggen"}}, "common": {"save": ""}}, indent=2),
    )
    return tmp_path


@pytest.fixture
def config_data():
    return {
        "locales": ["en", "nl"],
        "defaultLocale": "en",
        "path": "src/i18n",
        "scan": {"exclude": ["**/*.test.tsx"]},
    }


@pytest.fixture
def config(project: Path, config_data):
    return config_from_dict(config_data, str(project))
