"""
Error taxonomy for cutoff checks.
"""

from __future__ import annotations


class CutoffError(Exception):
    """Base class for all errors raised by dependency_cutoff."""


class InvalidInput(CutoffError):
    """A package name, version spec, cutoff date or setting is malformed."""


class LookupFailed(CutoffError):
    """The external metadata lookup errored or returned unusable data."""


class MissingVersionMetadata(CutoffError):
    """The installed version has no publish timestamp in the registry history."""


class NoAlternative(CutoffError):
    """No version published at or before the cutoff can be recommended."""


class GraphDataMissing(CutoffError):
    """The lockfile lacks a package entry that a requirement refers to."""


class LockfileError(CutoffError):
    """The lockfile could not be read or parsed."""
