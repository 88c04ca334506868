"""
Error types shared by the store, the import pipeline and the HTTP layer
cpe_guesser/core/exceptions.py
"""


class CPEGuesserError(Exception):
    """Base class for all errors raised by cpe_guesser"""


class ConfigError(CPEGuesserError):
    """Configuration file missing, unreadable or invalid"""


class StoreError(CPEGuesserError):
    """The backing store could not be reached or a command failed"""


class IndexNotEmptyError(CPEGuesserError):
    """Import refused because the store already holds index data"""

    def __init__(self, row_count: int):
        self.row_count = row_count
        super().__init__(
            f"Store contains {row_count} index rows. Use --replace or --update."
        )


class ImportModeError(CPEGuesserError):
    """Conflicting import mode flags"""


class ImportLockedError(CPEGuesserError):
    """Another import run holds the import lock"""

    def __init__(self, holder: str, acquired_at=None):
        self.holder = holder
        self.acquired_at = acquired_at
        since = f" since {acquired_at.isoformat()}" if acquired_at else ""
        super().__init__(
            f"Import lock is held by {holder}{since}. "
            f"Wait for that run to finish or use --break-lock if it died."
        )


class DictionaryError(CPEGuesserError):
    """The CPE dictionary could not be downloaded, decompressed or parsed"""
