"""Exceptions raised by aichat-setup."""

from __future__ import annotations


class SetupError(Exception):
    """Base class for errors with a short, user-facing cause."""


class FlagError(SetupError, ValueError):
    """Invalid combination of command line flags."""


class PackageManagerError(SetupError):
    """The package manager is missing or the install command failed."""


class MalformedBlockError(SetupError):
    """A tagged profile block has no unambiguous start/end boundary."""

    def __init__(self, tag: str, reason: str) -> None:
        super().__init__(f"block '{tag}' is malformed: {reason}")
        self.tag = tag
        self.reason = reason
