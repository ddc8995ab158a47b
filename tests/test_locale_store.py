import json

import yaml

from keysync.config import config_from_dict
from keysync.locale_store import dump_locale_tree, locale_file, read_locale_trees, write_locale_tree

from conftest import write


def make_config(tmp_path, locale_format="json"):
    return config_from_dict({"locales": ["en", "nl"], "path": "i18n", "format": locale_format}, str(tmp_path))


class TestReadLocaleTrees:
    def test_missing_file_is_empty_tree(self, tmp_path):
        config = make_config(tmp_path)
        write(tmp_path / "i18n" / "en.json", '{"a": {"b": "x"}}')
        trees, errors = read_locale_trees(config)
        assert trees == {"en": {"a": {"b": "x"}}, "nl": {}}
        assert errors == {}

    def test_parse_error_is_per_locale(self, tmp_path):
        config = make_config(tmp_path)
        write(tmp_path / "i18n" / "en.json", '{"a": "x"}')
        write(tmp_path / "i18n" / "nl.json", '{"a": ')
        trees, errors = read_locale_trees(config)
        assert trees == {"en": {"a": "x"}}
        assert list(errors) == ["nl"]
        assert "JSON parsing failed" in errors["nl"]

    def test_yaml_locales(self, tmp_path):
        config = make_config(tmp_path, "yaml")
        write(tmp_path / "i18n" / "en.yml", "a:\n  b: x\n")
        write(tmp_path / "i18n" / "nl.yml", "")
        trees, errors = read_locale_trees(config)
        assert trees == {"en": {"a": {"b": "x"}}, "nl": {}}
        assert errors == {}


class TestWriteLocaleTree:
    def test_json_round_trip_keeps_order(self, tmp_path):
        config = make_config(tmp_path)
        tree = {"z": {"b": "1", "a": "2"}, "a": "ü"}
        filename = write_locale_tree(config, "en", tree)
        assert filename == locale_file(config, "en")

        text = (tmp_path / "i18n" / "en.json").read_text(encoding="utf-8")
        assert text.endswith("}\n")
        assert "ü" in text
        assert list(json.loads(text)) == ["z", "a"]
        assert [p.name for p in (tmp_path / "i18n").iterdir()] == ["en.json"]

    def test_yaml_output(self, tmp_path):
        config = make_config(tmp_path, "yaml")
        write_locale_tree(config, "nl", {"b": {"c": "x"}, "a": "y"})
        data = yaml.safe_load((tmp_path / "i18n" / "nl.yml").read_text(encoding="utf-8"))
        assert list(data) == ["b", "a"]

    def test_dump_json_format(self):
        assert dump_locale_tree({"a": "b"}) == '{\n  "a": "b"\n}\n'
