"""Tests for the scan driver over hand-built token streams."""

from __future__ import annotations

import logging

import pytest

from tagscan.config import ScanConfig
from tagscan.entity import EntityStatus, EntityType
from tagscan.errors import IllegalStateTransition, ScanCancelled
from tagscan.scanner import Scanner, ScanResult
from tagscan.tokens import ConstructType, LexicalToken

comment = LexicalToken.comment
keyword = LexicalToken.keyword
ident = LexicalToken.identifier
const = LexicalToken.constant


def _scan(tokens: list[LexicalToken], **kwargs) -> ScanResult:
    return Scanner(tokens, **kwargs).scan()


class TestScenarios:
    """Tags land on the construct they precede."""

    def test_tag_on_module(self) -> None:
        result = _scan(
            [comment("# @domain: FooDomain"), keyword("module"), const("Foo"), keyword("end")]
        )
        foo = result.find("Foo")
        assert foo is not None
        assert foo.tags == {"domain": frozenset({"FooDomain"})}
        assert foo.is_closed
        assert foo.type is EntityType.MODULE

    def test_tag_on_nested_class(self) -> None:
        result = _scan(
            [
                keyword("module"),
                const("Foo"),
                comment("# @domain: FooDomain"),
                keyword("class"),
                const("Bar"),
                keyword("end"),
                keyword("end"),
            ]
        )
        bar = result.find("Bar")
        assert bar.fqn == "Foo::Bar"
        assert bar.tags == {"domain": frozenset({"FooDomain"})}
        assert result.find("Foo").tags == {}

    def test_multiple_values_for_one_tag(self) -> None:
        result = _scan(
            [
                comment("# @domain: Fizz"),
                comment("# @domain: Buzz"),
                keyword("module"),
                const("Foo"),
                keyword("end"),
            ]
        )
        assert result.find("Foo").tags["domain"] == frozenset({"Fizz", "Buzz"})

    def test_closed_method_is_never_retagged(self) -> None:
        result = _scan(
            [
                keyword("class"),
                const("Foo"),
                keyword("def"),
                ident("method_a"),
                keyword("end"),
                comment("# @domain: Later"),
                keyword("def"),
                ident("method_b"),
                keyword("end"),
                keyword("end"),
            ]
        )
        assert result.find("method_a").tags == {}
        assert result.find("method_b").tags == {"domain": frozenset({"Later"})}
        assert result.find("method_b").fqn == "Foo#method_b"

    def test_tag_after_top_level_method_goes_to_new_root(self) -> None:
        result = _scan(
            [
                keyword("def"),
                ident("method_a"),
                keyword("end"),
                comment("# @domain: Next"),
            ]
        )
        method_a, root = result.entities
        assert method_a.tags == {}
        assert root.tags == {"domain": frozenset({"Next"})}
        assert root.status is EntityStatus.TAGGED

    def test_pseudo_identifiers_skipped_while_awaiting_name(self) -> None:
        result = _scan([keyword("module"), ident("require"), ident("private"), const("Foo")])
        (foo,) = result.entities
        assert foo.name == "Foo"
        assert foo.status is EntityStatus.NAMED


class TestRootClosure:
    """Closing a root scope starts a fresh detached root."""

    def test_several_top_level_constructs(self) -> None:
        result = _scan(
            [
                keyword("module"),
                const("A"),
                keyword("end"),
                comment("# @domain: B"),
                keyword("module"),
                const("B"),
                keyword("end"),
            ]
        )
        a, b, trailing = result.entities
        assert (a.name, b.name) == ("A", "B")
        assert a.parent is None
        assert b.parent is None
        assert b.tags == {"domain": frozenset({"B"})}
        assert trailing.status is EntityStatus.PENDING

    def test_ids_follow_construction_order(self) -> None:
        result = _scan(
            [keyword("module"), const("A"), keyword("def"), ident("a"), keyword("end")]
        )
        assert [e.id for e in result] == [0, 1]
        assert len(result) == 2


class TestOpenEntities:
    """Entities left open at end of stream stay in the result."""

    def test_unclosed_entities_retained(self) -> None:
        result = _scan(
            [
                keyword("module"),
                const("Foo"),
                comment("# @domain: Inner"),
                keyword("class"),
                const("Bar"),
            ]
        )
        assert [e.name for e in result.open_entities()] == ["Foo", "Bar"]
        assert result.find("Bar").fqn == "Foo::Bar"
        assert result.find("Bar").status is EntityStatus.NAMED

    def test_empty_stream(self) -> None:
        result = _scan([])
        assert len(result) == 1
        assert result.entities[0].status is EntityStatus.PENDING
        assert result.token_count == 0


class TestQueries:
    """ScanResult lookups."""

    @pytest.fixture
    def result(self) -> ScanResult:
        return _scan(
            [
                comment("# @domain: Billing"),
                keyword("module"),
                const("Billing"),
                comment("# @owner: team-a"),
                keyword("def", construct_type=ConstructType.METHOD),
                ident("run"),
                keyword("end"),
                comment("# @domain: Billing"),
                keyword("class"),
                const("run"),
                keyword("end"),
            ]
        )

    def test_named(self, result: ScanResult) -> None:
        assert [e.name for e in result.named()] == ["Billing", "run", "run"]

    def test_find_returns_first(self, result: ScanResult) -> None:
        assert result.find("run").type is EntityType.METHOD
        assert result.find("missing") is None

    def test_find_all(self, result: ScanResult) -> None:
        assert len(result.find_all("run")) == 2

    def test_find_fqn(self, result: ScanResult) -> None:
        assert result.find_fqn("Billing::run").type is EntityType.METHOD
        assert result.find_fqn("Nope") is None

    def test_with_tag(self, result: ScanResult) -> None:
        assert [e.fqn for e in result.with_tag("domain")] == ["Billing", "Billing::run"]
        assert [e.name for e in result.with_tag("owner", "team-a")] == ["run"]
        assert result.with_tag("owner", "team-b") == []

    def test_tagged(self, result: ScanResult) -> None:
        assert len(result.tagged()) == 3


class TestErrorPolicy:
    """Fail fast by default; skip on request."""

    def _bad_tokens(self) -> list[LexicalToken]:
        return [
            keyword("module", lineno=1, col=1),
            comment("# @domain: Late", lineno=2, col=3),
            const("Foo", lineno=3, col=1),
        ]

    def test_raise_by_default(self) -> None:
        with pytest.raises(IllegalStateTransition) as exc_info:
            _scan(self._bad_tokens(), source_file="foo.rb")
        error = exc_info.value
        assert error.lineno == 2
        assert error.col_offset == 3
        assert error.event == "tag"
        assert str(error).startswith("foo.rb:2:3 ")

    def test_skip_policy(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="tagscan"):
            result = _scan(self._bad_tokens(), config=ScanConfig(on_error="skip"))
        (foo,) = result.entities
        assert foo.name == "Foo"
        assert foo.tags == {}
        assert result.skipped_tokens == 1
        assert result.token_count == 3
        assert "skipping" in caplog.text

    def test_stray_end_raises(self) -> None:
        with pytest.raises(IllegalStateTransition):
            _scan([keyword("end")])

    def test_stray_end_skipped(self) -> None:
        result = _scan(
            [keyword("end"), keyword("module"), const("Foo"), keyword("end")],
            config=ScanConfig(on_error="skip"),
        )
        assert result.find("Foo").is_closed
        assert result.skipped_tokens == 1

    def test_dangling_tag_end_closes_enclosing_scope(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        tokens = [
            keyword("module"), const("A"),
            keyword("class"), const("B"),
            keyword("def"), ident("m"), keyword("end"),
            comment("# @note: dangling", lineno=4),
            keyword("end", lineno=5),
            keyword("end", lineno=6),
            keyword("module"), const("C"), keyword("end"),
        ]
        with caplog.at_level(logging.WARNING, logger="tagscan"):
            result = _scan(tokens, config=ScanConfig(on_error="skip"))

        assert [e.fqn for e in result.named()] == ["A", "A::B", "A::B#m", "C"]
        assert all(e.is_closed for e in result.named())
        assert result.skipped_tokens == 0
        (dangling,) = result.with_tag("note")
        assert dangling.status is EntityStatus.TAGGED
        assert dangling.parent is result.find("B")
        assert "closes its parent" in caplog.text

    def test_dangling_dropped_tag_end_closes_enclosing_scope(self) -> None:
        tokens = [
            keyword("module"), const("A"),
            comment("# @todo: later"),
            keyword("end"),
            keyword("module"), const("C"), keyword("end"),
        ]
        result = _scan(tokens, config=ScanConfig(only_tags=frozenset({"domain"}), on_error="skip"))
        assert result.find("A").is_closed
        assert result.find("C").fqn == "C"
        assert result.skipped_tokens == 0

    def test_dangling_tag_end_raises_by_default(self) -> None:
        tokens = [keyword("module"), const("A"), comment("# @note: x"), keyword("end", lineno=3)]
        with pytest.raises(IllegalStateTransition) as exc_info:
            _scan(tokens)
        assert exc_info.value.lineno == 3


class TestScannerLifecycle:
    """Single-use scanners and cooperative cancellation."""

    def test_single_use(self) -> None:
        scanner = Scanner([])
        scanner.scan()
        with pytest.raises(RuntimeError):
            scanner.scan()

    def test_current_moves_with_tokens(self) -> None:
        scanner = Scanner([keyword("module"), const("Foo")])
        root = scanner.current
        scanner.scan()
        assert scanner.current is root

    def test_cancellation(self) -> None:
        calls = 0

        def should_cancel() -> bool:
            nonlocal calls
            calls += 1
            return calls > 2

        tokens = [keyword("module"), const("Foo"), keyword("end"), keyword("module")]
        with pytest.raises(ScanCancelled) as exc_info:
            _scan(tokens, should_cancel=should_cancel)
        assert exc_info.value.tokens_consumed == 2

    def test_token_stream_consumed_lazily(self) -> None:
        def tokens():
            yield keyword("module")
            yield const("Foo")
            yield keyword("end")

        result = _scan(tokens())
        assert result.find("Foo").is_closed
        assert result.token_count == 3

    def test_source_file_recorded(self) -> None:
        assert _scan([], source_file="foo.rb").source_file == "foo.rb"
