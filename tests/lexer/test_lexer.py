"""Tests for the Ruby-subset lexer.

Each test checks the classified token stream for one construct family:
which words survive, and how keywords are classified.
"""

from __future__ import annotations

import pytest

from tagscan.errors import LexError
from tagscan.lexer import Lexer
from tagscan.tokens import ConstructType, KeywordClass, LexicalToken, TokenKind


def _tokens(source: str) -> list[LexicalToken]:
    return list(Lexer(source).tokenize())


def _pairs(source: str) -> list[tuple[TokenKind, str]]:
    return [(t.kind, t.text) for t in _tokens(source)]


def _ends(source: str) -> list[KeywordClass | None]:
    return [t.keyword_class for t in _tokens(source) if t.text == "end"]


class TestBasicTokens:
    """Comments, keywords, identifiers and constants."""

    def test_module_and_end(self) -> None:
        assert _pairs("module Foo\nend\n") == [
            (TokenKind.KEYWORD, "module"),
            (TokenKind.CONSTANT, "Foo"),
            (TokenKind.KEYWORD, "end"),
        ]

    def test_empty_source(self) -> None:
        assert _tokens("") == []

    def test_comment_token_carries_tag(self) -> None:
        (token,) = _tokens("# @domain: Billing\n")
        assert token.kind is TokenKind.COMMENT
        assert token.is_tag_comment
        assert token.tag_name == "domain"
        assert token.tag_value == "Billing"

    def test_plain_comment(self) -> None:
        (token,) = _tokens("# just a note\n")
        assert token.kind is TokenKind.COMMENT
        assert not token.is_tag_comment

    def test_trailing_comment_after_code(self) -> None:
        tokens = _tokens("def foo # @domain: Inline\nend\n")
        assert [t.kind for t in tokens] == [
            TokenKind.KEYWORD,
            TokenKind.IDENTIFIER,
            TokenKind.COMMENT,
            TokenKind.KEYWORD,
        ]
        assert tokens[2].tag_value == "Inline"

    def test_crlf_line_endings(self) -> None:
        tokens = _tokens("# @domain: Billing\r\nmodule Foo\r\nend\r\n")
        assert tokens[0].tag_value == "Billing"
        assert [t.text for t in tokens[1:]] == ["module", "Foo", "end"]

    def test_constant_path_is_one_token(self) -> None:
        assert _pairs("class Foo::Bar < Base\nend\n") == [
            (TokenKind.KEYWORD, "class"),
            (TokenKind.CONSTANT, "Foo::Bar"),
            (TokenKind.CONSTANT, "Base"),
            (TokenKind.KEYWORD, "end"),
        ]

    def test_rooted_constant_path_is_one_token(self) -> None:
        assert _pairs("class ::Foo::Bar\nend\n") == [
            (TokenKind.KEYWORD, "class"),
            (TokenKind.CONSTANT, "Foo::Bar"),
            (TokenKind.KEYWORD, "end"),
        ]

    def test_rooted_constant_path_then_method(self) -> None:
        assert _pairs("::Foo::Bar::baz\n") == [
            (TokenKind.CONSTANT, "Foo::Bar"),
            (TokenKind.IDENTIFIER, "baz"),
        ]

    def test_predicate_and_bang_identifiers(self) -> None:
        assert [t.text for t in _tokens("empty? save!\n")] == ["empty?", "save!"]


class TestLocations:
    """Line and column tracking."""

    def test_line_and_column(self) -> None:
        tokens = _tokens("module Foo\n  class Bar\n  end\nend\n")
        positions = [(t.text, t.lineno, t.col) for t in tokens]
        assert positions == [
            ("module", 1, 1),
            ("Foo", 1, 8),
            ("class", 2, 3),
            ("Bar", 2, 9),
            ("end", 3, 3),
            ("end", 4, 1),
        ]

    def test_source_file_on_tokens(self) -> None:
        tokens = list(Lexer("module Foo\nend\n", "foo.rb").tokenize())
        assert all(t.source_file == "foo.rb" for t in tokens)
        assert str(tokens[1].location) == "foo.rb:1:8"

    def test_lines_counted_inside_literals(self) -> None:
        tokens = _tokens('x = "a\nb\nc"\nmodule Foo\nend\n')
        module = next(t for t in tokens if t.text == "module")
        assert module.lineno == 4


class TestLiteralsAreSkipped:
    """Nothing inside a literal leaks into the token stream."""

    @pytest.mark.parametrize(
        "source",
        [
            'x = "end # not a comment"\n',
            "x = 'end'\n",
            'x = "a #{"end"} b"\n',
            "x = `end`\n",
            "x = :end\n",
            'x = :"end"\n',
            "x = %w[end class]\n",
            "x = %q(end (class))\n",
            "x = /end|class/i\n",
            "x = %r{end}\n",
            "x = ?e\n",
        ],
    )
    def test_literal_hides_keywords(self, source: str) -> None:
        assert _pairs(source) == [(TokenKind.IDENTIFIER, "x")]

    def test_heredoc_body_is_skipped(self) -> None:
        source = "x = <<~SQL\n  end\n  # @domain: Hidden\nSQL\nmodule Foo\nend\n"
        assert [t.text for t in _tokens(source)] == ["x", "module", "Foo", "end"]

    def test_quoted_heredoc_and_dash_heredoc(self) -> None:
        source = "a = <<-'EOS'\n  end\n  EOS\nb = <<\"EOS\"\nclass\nEOS\n"
        assert [t.text for t in _tokens(source)] == ["a", "b"]

    def test_two_heredocs_on_one_line(self) -> None:
        source = "foo(<<~A, <<~B)\n  end\nA\n  end\nB\nbar\n"
        assert [t.text for t in _tokens(source)] == ["foo", "bar"]

    def test_shift_operator_is_not_heredoc(self) -> None:
        source = "items << value\nmodule Foo\nend\n"
        assert [t.text for t in _tokens(source)] == ["items", "value", "module", "Foo", "end"]

    def test_embedded_document_is_skipped(self) -> None:
        source = "=begin\nmodule Hidden\nend\n=end\nmodule Foo\nend\n"
        assert [t.text for t in _tokens(source)] == ["module", "Foo", "end"]

    def test_end_marker_stops_lexing(self) -> None:
        source = "module Foo\nend\n__END__\nmodule Data\nend\n"
        assert [t.text for t in _tokens(source)] == ["module", "Foo", "end"]

    def test_division_is_not_regex(self) -> None:
        source = "x = a / b\ny = c / d\n"
        assert [t.text for t in _tokens(source)] == ["x", "a", "b", "y", "c", "d"]

    def test_modulo_is_not_percent_literal(self) -> None:
        assert [t.text for t in _tokens("x = a % b\n")] == ["x", "a", "b"]


class TestWordContext:
    """Words that look like keywords but are not."""

    def test_method_call_named_like_keyword(self) -> None:
        assert _pairs("obj.class\n") == [
            (TokenKind.IDENTIFIER, "obj"),
            (TokenKind.IDENTIFIER, "class"),
        ]

    def test_safe_navigation_call(self) -> None:
        assert _pairs("obj&.end\n") == [
            (TokenKind.IDENTIFIER, "obj"),
            (TokenKind.IDENTIFIER, "end"),
        ]

    def test_label_keys_are_skipped(self) -> None:
        assert _pairs("foo(if: 1, class: 2, end: 3)\n") == [
            (TokenKind.IDENTIFIER, "foo"),
        ]

    def test_scope_resolution_method(self) -> None:
        tokens = _tokens("Foo::bar\n")
        assert [(t.kind, t.text) for t in tokens] == [
            (TokenKind.CONSTANT, "Foo"),
            (TokenKind.IDENTIFIER, "bar"),
        ]


class TestEndClassification:
    """The block stack decides which `end` closes a construct."""

    def test_construct_ends(self) -> None:
        assert _ends("module A\n  class B\n    def c\n    end\n  end\nend\n") == [
            KeywordClass.SCOPE_END,
            KeywordClass.SCOPE_END,
            KeywordClass.SCOPE_END,
        ]

    def test_if_block_end(self) -> None:
        source = "def foo\n  if x\n    y\n  end\nend\n"
        assert _ends(source) == [KeywordClass.OTHER, KeywordClass.SCOPE_END]

    def test_modifier_if_opens_no_block(self) -> None:
        source = "def foo\n  return if x\n  y unless z\nend\n"
        assert _ends(source) == [KeywordClass.SCOPE_END]

    def test_if_as_assigned_value_opens_block(self) -> None:
        source = "def foo\n  x = if y then 1 else 2 end\nend\n"
        assert _ends(source) == [KeywordClass.OTHER, KeywordClass.SCOPE_END]

    def test_do_block_end(self) -> None:
        source = "def foo\n  items.each do |i|\n    i\n  end\nend\n"
        assert _ends(source) == [KeywordClass.OTHER, KeywordClass.SCOPE_END]

    def test_loop_header_do_is_not_a_block(self) -> None:
        source = "def foo\n  while x do\n    y\n  end\nend\n"
        assert _ends(source) == [KeywordClass.OTHER, KeywordClass.SCOPE_END]

    def test_case_and_begin(self) -> None:
        source = (
            "def foo\n"
            "  case x\n  when 1 then y\n  end\n"
            "  begin\n    z\n  rescue StandardError\n    w\n  end\n"
            "end\n"
        )
        assert _ends(source) == [
            KeywordClass.OTHER,
            KeywordClass.OTHER,
            KeywordClass.SCOPE_END,
        ]

    def test_singleton_class_end(self) -> None:
        source = "class Foo\n  class << self\n    def bar; end\n  end\nend\n"
        tokens = _tokens(source)
        classes = [t for t in tokens if t.text == "class"]
        assert classes[0].keyword_class is KeywordClass.NEW_SCOPE
        assert classes[1].keyword_class is KeywordClass.OTHER
        assert _ends(source) == [
            KeywordClass.SCOPE_END,
            KeywordClass.OTHER,
            KeywordClass.SCOPE_END,
        ]

    def test_unmatched_end_is_scope_end(self) -> None:
        assert _ends("end\n") == [KeywordClass.SCOPE_END]


class TestMethodDefinitions:
    """`def` handling: receivers, names and endless definitions."""

    def _def_and_name(self, source: str) -> tuple[LexicalToken, LexicalToken]:
        tokens = _tokens(source)
        index = next(i for i, t in enumerate(tokens) if t.text == "def")
        return tokens[index], tokens[index + 1]

    def test_instance_method(self) -> None:
        keyword, name = self._def_and_name("def total\nend\n")
        assert keyword.construct_type is ConstructType.INSTANCE_METHOD
        assert keyword.keyword_class is KeywordClass.NEW_SCOPE
        assert (name.kind, name.text) == (TokenKind.IDENTIFIER, "total")

    def test_self_receiver_is_class_method(self) -> None:
        keyword, name = self._def_and_name("def self.build(x)\nend\n")
        assert keyword.construct_type is ConstructType.METHOD
        assert name.text == "build"

    def test_constant_receiver_is_class_method(self) -> None:
        keyword, name = self._def_and_name("def Foo.build\nend\n")
        assert keyword.construct_type is ConstructType.METHOD
        assert name.text == "build"

    def test_def_inside_singleton_class_is_class_method(self) -> None:
        keyword, name = self._def_and_name("class << self\n  def build; end\nend\n")
        assert keyword.construct_type is ConstructType.METHOD
        assert name.text == "build"

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("def empty?; end\n", "empty?"),
            ("def save!; end\n", "save!"),
            ("def name=(value); end\n", "name="),
            ("def ==(other); end\n", "=="),
            ("def <=>(other); end\n", "<=>"),
            ("def [](key); end\n", "[]"),
            ("def +@; end\n", "+@"),
        ],
    )
    def test_method_names(self, source: str, expected: str) -> None:
        _, name = self._def_and_name(source)
        assert name.kind is TokenKind.IDENTIFIER
        assert name.text == expected

    def test_keyword_named_method(self) -> None:
        _, name = self._def_and_name("def class; end\n")
        assert (name.kind, name.text) == (TokenKind.IDENTIFIER, "class")

    def test_endless_def_gets_synthetic_end(self) -> None:
        tokens = _tokens("def answer = 42\nmodule Foo\nend\n")
        assert [t.text for t in tokens] == ["def", "answer", "end", "module", "Foo", "end"]
        synthetic = tokens[2]
        assert synthetic.keyword_class is KeywordClass.SCOPE_END
        assert synthetic.lineno == 0

    def test_endless_def_with_arguments(self) -> None:
        tokens = _tokens("def find(id) = where(id: id).first\n")
        assert [t.text for t in tokens] == ["def", "find", "id", "where", "id", "first", "end"]
        assert tokens[-1].keyword_class is KeywordClass.SCOPE_END

    def test_endless_def_at_end_of_input(self) -> None:
        tokens = _tokens("def answer = 42")
        assert tokens[-1].keyword_class is KeywordClass.SCOPE_END

    def test_endless_def_closed_by_semicolon(self) -> None:
        tokens = _tokens("def a = 1; def b; end\n")
        assert [t.text for t in tokens] == ["def", "a", "end", "def", "b", "end"]


class TestStrictMode:
    """Unterminated literals only raise when strict."""

    @pytest.mark.parametrize(
        "source",
        [
            'x = "abc',
            "x = <<~EOS\nbody\n",
            "=begin\nnever closed\n",
            "x = %w[a b",
        ],
    )
    def test_lenient_by_default(self, source: str) -> None:
        _tokens(source)

    @pytest.mark.parametrize(
        "source",
        [
            'x = "abc',
            "x = <<~EOS\nbody\n",
            "=begin\nnever closed\n",
            "x = %w[a b",
        ],
    )
    def test_strict_raises(self, source: str) -> None:
        with pytest.raises(LexError) as exc_info:
            list(Lexer(source, "bad.rb", strict=True).tokenize())
        assert "Unterminated" in str(exc_info.value)
        assert exc_info.value.source_file == "bad.rb"
