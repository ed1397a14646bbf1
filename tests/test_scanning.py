from api_contract_infer.parser.scanning import (
    find_matching,
    object_entries,
    split_top_level,
    strip_comments,
    unquote,
)


class TestFindMatching:
    def test_nested_parentheses(self):
        text = "f(a, g(b, h(c)), d)"
        assert find_matching(text, 1) == len(text) - 1

    def test_ignores_closers_inside_strings(self):
        text = "f(')', \"(\", `)`)"
        assert find_matching(text, 1) == len(text) - 1

    def test_ignores_closers_inside_comments(self):
        text = "f(a, // )\n b)"
        assert find_matching(text, 1) == len(text) - 1

    def test_template_substitution(self):
        text = "f(`${g(1)})`)"
        assert find_matching(text, 1) == len(text) - 1

    def test_unterminated_returns_none(self):
        assert find_matching("f(a, g(b)", 1) is None

    def test_braces(self):
        text = "{ a: { b: 1 }, c: [1, 2] }"
        assert find_matching(text, 0) == len(text) - 1


class TestSplitTopLevel:
    def test_splits_only_outside_groups(self):
        parts = split_top_level("'/x', validate(a.b, { c: 1 }), ctrl.run")
        assert parts == ["'/x'", "validate(a.b, { c: 1 })", "ctrl.run"]

    def test_comma_inside_string(self):
        assert split_top_level("'a,b', c") == ["'a,b'", "c"]

    def test_drops_empty_parts(self):
        assert split_top_level("a, b,") == ["a", "b"]


class TestStripComments:
    def test_removes_line_and_block_comments(self):
        text = "a // one\nb /* two */ c"
        assert strip_comments(text) == "a \nb   c"

    def test_keeps_comment_markers_in_strings(self):
        text = "url = 'http://example.com'"
        assert strip_comments(text) == text


class TestLiterals:
    def test_unquote(self):
        assert unquote("'/login'") == "/login"
        assert unquote("`/x`") == "/x"
        assert unquote("path") is None

    def test_object_entries(self):
        entries = object_entries("{ success: true, data: user as User, email, ...rest }")
        assert entries == {"success": "true", "data": "user as User", "email": "email"}

    def test_object_entries_quoted_keys(self):
        assert object_entries("{ 'content-type': 1, \"x\": 2 }") == {"x": "2"}

    def test_object_entries_non_object(self):
        assert object_entries("[1, 2]") == {}


class TestRegexLiterals:
    def test_quote_inside_regex(self):
        text = "f(s.replace(/'/g, ''), b)"
        assert find_matching(text, 1) == len(text) - 1

    def test_closer_inside_regex(self):
        text = "f(s.match(/\\)[)]/), b)"
        assert find_matching(text, 1) == len(text) - 1

    def test_division_is_not_a_regex(self):
        text = "f(a / b, (c) / 2, d[0] / 'x')"
        assert find_matching(text, 1) == len(text) - 1
        assert split_top_level(text[2:-1]) == ["a / b", "(c) / 2", "d[0] / 'x'"]

    def test_regex_after_keyword(self):
        text = "{ return /'/.test(s); }"
        assert find_matching(text, 0) == len(text) - 1

    def test_split_keeps_regex_whole(self):
        assert split_top_level("/a,b/g, c") == ["/a,b/g", "c"]

    def test_strip_comments_keeps_regex(self):
        assert strip_comments("const re = /a'b/; // note") == "const re = /a'b/;  "
