"""Tests for paneldash.highlight."""

from __future__ import annotations

import pytest

from paneldash.highlight import (
    DetailRow,
    compile_terms,
    escape_markup,
    filter_rows,
    parse_markup,
    render_rows,
    split_terms,
    strip_markup,
)

ROWS = [
    DetailRow("HOME", "/home/ada"),
    DetailRow("PATH", "/usr/bin:/bin"),
    DetailRow("SHELL", "/bin/zsh"),
    DetailRow("LANG", "en_US.UTF-8"),
]


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("", []),
        ("   ", []),
        ("bin", ["bin"]),
        ("  bin   usr ", ["bin", "usr"]),
        ("bin usr bin", ["bin", "usr"]),
        ("a\tb\nc", ["a", "b", "c"]),
    ],
)
def test_split_terms(text: str, expected: list[str]) -> None:
    assert split_terms(text) == expected


class TestFilterRows:
    def test_no_terms_is_identity(self) -> None:
        assert filter_rows(ROWS, []) == ROWS
        assert filter_rows(ROWS, ["", " "]) == ROWS

    def test_single_term_matches_label_or_value(self) -> None:
        assert filter_rows(ROWS, ["bin"]) == [ROWS[1], ROWS[2]]
        assert filter_rows(ROWS, ["home"]) == [ROWS[0]]

    def test_all_terms_must_match(self) -> None:
        assert filter_rows(ROWS, ["bin", "zsh"]) == [ROWS[2]]
        assert filter_rows(ROWS, ["bin", "nothing"]) == []

    def test_case_insensitive(self) -> None:
        assert filter_rows(ROWS, ["utf"]) == [ROWS[3]]
        assert filter_rows(ROWS, ["Shell"]) == [ROWS[2]]

    def test_regex_metacharacters_are_literal(self) -> None:
        rows = [DetailRow("A", "x.y"), DetailRow("B", "xzy"), DetailRow("C", "(")]
        assert filter_rows(rows, ["x.y"]) == [rows[0]]
        assert filter_rows(rows, ["("]) == [rows[2]]

    def test_source_rows_untouched(self) -> None:
        rows = list(ROWS)
        filter_rows(rows, ["bin"])
        render_rows(rows, ["bin"])
        assert rows == ROWS


class TestRenderRows:
    def test_plain_rows_aligned(self) -> None:
        rows = [DetailRow("A", "1"), DetailRow("LONG", "2")]
        assert render_rows(rows) == (
            "{cyan}{bold}A{/}    {green}1{/}\n{cyan}{bold}LONG{/} {green}2{/}"
        )

    def test_empty(self) -> None:
        assert render_rows([]) == ""

    def test_highlights_every_match_and_restores_style(self) -> None:
        out = render_rows([DetailRow("PATH", "/bin:/usr/bin")], ["BIN"])
        assert out == (
            "{cyan}{bold}PATH{/} "
            "{green}/{inverse}bin{/}{green}:/usr/{inverse}bin{/}{green}{/}"
        )

    def test_label_highlight(self) -> None:
        out = render_rows([DetailRow("HOME", "x")], ["om"])
        assert out.startswith("{cyan}{bold}H{inverse}OM{/}{cyan}{bold}E{/}")

    def test_braces_in_data_escaped(self) -> None:
        out = render_rows([DetailRow("K", "{red}")])
        assert "{open}red{close}" in out
        assert strip_markup(out) == "K {red}"

    def test_visible_text_unchanged_by_highlighting(self) -> None:
        rows = [DetailRow("PATH", "/usr/bin"), DetailRow("SHELL", "/bin/sh")]
        plain = [strip_markup(line) for line in render_rows(rows).split("\n")]
        marked = [strip_markup(line) for line in render_rows(rows, ["bin", "sh"]).split("\n")]
        assert plain == marked


class TestMarkup:
    def test_compile_terms_empty(self) -> None:
        assert compile_terms([]) is None
        assert compile_terms([" "]) is None

    def test_escape_markup(self) -> None:
        assert escape_markup("{a}") == "{open}a{close}"

    def test_parse_markup_runs(self) -> None:
        assert parse_markup("{cyan}{bold}A{/} {green}b{/}") == [
            ("A", frozenset({"cyan", "bold"})),
            (" ", frozenset()),
            ("b", frozenset({"green"})),
        ]

    def test_unknown_tags_are_text(self) -> None:
        assert strip_markup("{nope}x") == "{nope}x"
