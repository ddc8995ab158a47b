"""
Error types for keysync.

Validation problems and dynamic key usages are reported as data, not raised.
The exceptions here cover the conditions that stop one unit of work: a
locale that cannot be flattened, a locale file that cannot be read, a scan
that was cancelled, or a configuration the CLI cannot start with.
"""

from typing import Any, Dict, Optional


class KeySyncError(Exception):
    """Base exception for all keysync errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigError(KeySyncError):
    """Configuration is missing or unusable."""

    MISSING_CONFIG = "MISSING_CONFIG"
    INVALID_CONFIG = "INVALID_CONFIG"
    NO_LOCALES = "NO_LOCALES"

    def __init__(self, code: str, message: str, path: Optional[str] = None):
        super().__init__(message, {"code": code, "path": path})
        self.code = code
        self.path = path


class MalformedLocaleError(KeySyncError):
    """A locale tree cannot be flattened."""

    def __init__(self, reason: str, path: str = "", locale: Optional[str] = None):
        message = f"{reason} at '{path}'" if path else reason
        super().__init__(message, {"path": path, "locale": locale})
        self.reason = reason
        self.path = path
        self.locale = locale


class LocaleFileError(KeySyncError):
    """A locale file exists but could not be read or parsed."""

    def __init__(self, locale: str, filename: str, reason: str):
        super().__init__(
            f"Cannot load {filename}: {reason}",
            {"locale": locale, "filename": filename},
        )
        self.locale = locale
        self.filename = filename
        self.reason = reason


class ScanCancelled(KeySyncError):
    """The scan was cancelled before every file was processed."""

    def __init__(self, processed: int = 0):
        super().__init__("Scan cancelled", {"processed": processed})
        self.processed = processed
