import pytest

from keysync.hardcoded import find_hardcoded_text, is_hardcoded_candidate_file, is_likely_hardcoded_text


class TestIsLikelyHardcodedText:
    @pytest.mark.parametrize("text", ["Save", "Visible text", "Don't panic!", "Sign  in\n   now"])
    def test_plain_text(self, text):
        assert is_likely_hardcoded_text(text)

    @pytest.mark.parametrize(
        "text",
        [
            "ok",
            "123",
            "auth.login.title",
            "common:save",
            "true",
            "Undefined",
            "https://example.com",
            "/settings",
            "#top",
            "a => b",
            "const value",
            "Promise of string",
        ],
    )
    def test_rejected(self, text):
        assert not is_likely_hardcoded_text(text)


class TestFindHardcodedText:
    def test_jsx_text_and_attributes(self):
        source = (
            "export const App = () => (\n"
            "  <form>\n"
            "    <p>Visible text</p>\n"
            '    <input placeholder="Search products" aria-label="Search" />\n'
            '    <img alt={t("logo.alt")} title="auth.login.title" />\n'
            "  </form>\n"
            ");\n"
        )
        found = [(h.line, h.kind, h.text) for h in find_hardcoded_text("src/App.tsx", source)]
        assert found == [
            (3, "jsx_text", "Visible text"),
            (4, "jsx_attribute", "Search"),
            (4, "jsx_attribute", "Search products"),
        ]

    def test_translated_text_is_not_reported(self):
        assert find_hardcoded_text("a.tsx", '<h1>{t("auth.title")}</h1>') == []

    def test_duplicates_on_one_line_reported_once(self):
        found = find_hardcoded_text("a.tsx", "<b>Hello there</b><i>Hello there</i>")
        assert [(h.line, h.text) for h in found] == [(1, "Hello there")]
        assert found[0].to_dict() == {"file": "a.tsx", "line": 1, "kind": "jsx_text", "text": "Hello there"}

    def test_candidate_files(self):
        assert is_hardcoded_candidate_file("src/App.tsx")
        assert is_hardcoded_candidate_file("src/App.jsx")
        assert not is_hardcoded_candidate_file("src/app.ts")
