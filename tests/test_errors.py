"""Error construction, formatting and hierarchy."""

import pytest

from tagscan.entity import EntityStatus
from tagscan.errors import (
    FrozenEntityError,
    IllegalStateTransition,
    LexError,
    ScanCancelled,
    StateMachineDefinitionError,
    TagscanError,
)

# =========================================================================
# IllegalStateTransition
# =========================================================================


class TestIllegalStateTransition:
    """Message names the event and the status."""

    def test_message_without_location(self) -> None:
        err = IllegalStateTransition("close", EntityStatus.PENDING)
        assert str(err) == "Invalid transition: cannot transition via close from pending"
        assert err.lineno is None

    def test_plain_status_values(self) -> None:
        err = IllegalStateTransition("flip", "stuck")
        assert "from stuck" in str(err)

    def test_with_location(self) -> None:
        err = IllegalStateTransition("tag", EntityStatus.AWAITING_NAME)
        located = err.with_location(7, 3, "foo.rb")
        assert str(located).startswith("foo.rb:7:3 Invalid transition")
        assert located.event == "tag"
        assert located.status is EntityStatus.AWAITING_NAME
        assert err.lineno is None

    def test_line_only(self) -> None:
        err = IllegalStateTransition("tag", EntityStatus.NAMED, lineno=5)
        assert str(err).startswith("5 Invalid")


class TestFrozenEntityError:
    def test_message(self) -> None:
        err = FrozenEntityError("set _name", EntityStatus.CLOSED)
        assert str(err) == "Cannot modify closed entity (set _name)"

    def test_with_location_keeps_type(self) -> None:
        err = FrozenEntityError("set _name", EntityStatus.CLOSED).with_location(2)
        assert isinstance(err, FrozenEntityError)


class TestOtherErrors:
    def test_scan_cancelled(self) -> None:
        err = ScanCancelled(12)
        assert err.tokens_consumed == 12
        assert "12" in str(err)

    def test_lex_error_formatting(self) -> None:
        err = LexError("Unterminated literal", lineno=10, col_offset=5, source_file="a.rb")
        assert str(err) == "a.rb:10:5 Unterminated literal"
        assert err.message == "Unterminated literal"

    def test_lex_error_message_only(self) -> None:
        assert str(LexError("bad")) == "bad"


@pytest.mark.parametrize(
    "error",
    [
        IllegalStateTransition("tag", EntityStatus.CLOSED),
        FrozenEntityError("set id", EntityStatus.CLOSED),
        StateMachineDefinitionError("bad machine"),
        ScanCancelled(0),
        LexError("bad"),
    ],
)
def test_all_errors_are_tagscan_errors(error: Exception) -> None:
    assert isinstance(error, TagscanError)
