"""ContextVar-based scan configuration for tagscan.

Provides thread-local configuration using Python's ContextVars (PEP 567).
Config is set once per scan, read by every entity reacting to tokens.

Thread Safety:
    ContextVars are thread-local by design. Each thread has independent storage,
    so concurrent scans with different allow-lists never see each other's config.

Usage:
    # Through the public API
    result = scan(source, only_tags={"domain"})

    # Direct scanner usage (advanced)
    from tagscan.config import ScanConfig, scan_config_context

    with scan_config_context(ScanConfig(only_tags=frozenset({"domain"}))):
        result = Scanner(tokens).scan()

    # Process-wide style, mirroring a configure block
    configure(only_tags={"domain", "owner"})
    ...
    reset_scan_config()

"""

from collections.abc import Iterable
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any, Iterator, Literal

OnError = Literal["raise", "skip"]

_VALID_ON_ERROR = ("raise", "skip")


@dataclass(frozen=True, slots=True)
class ScanConfig:
    """Immutable scan configuration.

    Attributes:
        only_tags: Allow-list of accepted tag names. Empty means accept all.
        on_error: "raise" propagates IllegalStateTransition and aborts the
            scan; "skip" logs a warning and skips the offending token.

    """

    only_tags: frozenset[str] = frozenset()
    on_error: OnError = "raise"

    def __post_init__(self) -> None:
        if not isinstance(self.only_tags, frozenset):
            object.__setattr__(self, "only_tags", frozenset(self.only_tags))
        if self.on_error not in _VALID_ON_ERROR:
            raise ValueError(
                f"on_error must be one of {_VALID_ON_ERROR}, got {self.on_error!r}"
            )

    def accepts_tag(self, tag_name: str) -> bool:
        """Whether a tag name passes the allow-list."""
        return not self.only_tags or tag_name in self.only_tags

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "ScanConfig":
        """Create ScanConfig from dictionary.

        Only includes keys that are valid ScanConfig fields; unknown keys
        are silently ignored.

        Example:
            >>> config = ScanConfig.from_dict({
            ...     "only_tags": ["domain"],
            ...     "unknown_key": "ignored",
            ... })
            >>> sorted(config.only_tags)
            ['domain']

        """
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in config_dict.items() if k in valid_fields}
        if "only_tags" in filtered:
            filtered["only_tags"] = frozenset(filtered["only_tags"] or ())
        return cls(**filtered)


# Module-level default config (reused, never recreated)
_DEFAULT_CONFIG: ScanConfig = ScanConfig()

# Thread-local configuration via ContextVar
_scan_config: ContextVar[ScanConfig] = ContextVar(
    "scan_config",
    default=_DEFAULT_CONFIG,
)


def get_scan_config() -> ScanConfig:
    """Get current scan configuration (thread-local)."""
    return _scan_config.get()


def set_scan_config(config: ScanConfig) -> None:
    """Set scan configuration for current context.

    Thread Safety:
        Only affects the current thread's context. Other threads are unaffected.

    """
    _scan_config.set(config)


def reset_scan_config() -> None:
    """Reset to default configuration (empty allow-list, fail fast)."""
    _scan_config.set(_DEFAULT_CONFIG)


def configure(
    *,
    only_tags: Iterable[str] | None = None,
    on_error: OnError | None = None,
) -> ScanConfig:
    """Update the current context's configuration.

    Unspecified settings keep their current values.

    Returns:
        The newly active ScanConfig.

    Example:
        >>> configure(only_tags=["foo", "bar"]).accepts_tag("baz")
        False
        >>> reset_scan_config()

    """
    changes: dict[str, Any] = {}
    if only_tags is not None:
        changes["only_tags"] = frozenset(only_tags)
    if on_error is not None:
        changes["on_error"] = on_error
    config = replace(get_scan_config(), **changes)
    set_scan_config(config)
    return config


@contextmanager
def scan_config_context(config: ScanConfig) -> Iterator[None]:
    """Context manager for temporary config changes.

    Restores the previous config even if an exception is raised.

    Example:
        >>> with scan_config_context(ScanConfig(only_tags=frozenset({"domain"}))):
        ...     result = Scanner(tokens).scan()

    """
    previous = _scan_config.get()
    _scan_config.set(config)
    try:
        yield
    finally:
        _scan_config.set(previous)


__all__ = [
    "OnError",
    "ScanConfig",
    "configure",
    "get_scan_config",
    "reset_scan_config",
    "scan_config_context",
    "set_scan_config",
]
