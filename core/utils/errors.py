"""Custom exceptions for report package loading."""

from __future__ import annotations

from typing import Literal

PbixErrorCode = Literal[
    "PBIX_NOT_ZIP",
    "LAYOUT_NOT_FOUND",
    "LAYOUT_DECODE_FAILED",
    "LAYOUT_PARSE_FAILED",
]

_DISPLAY_MESSAGES: dict[str, str] = {
    "PBIX_NOT_ZIP": "The selected file is not a valid PBIX file.",
    "LAYOUT_NOT_FOUND": "The PBIX file does not contain a report layout.",
    "LAYOUT_DECODE_FAILED": "The report layout could not be decoded.",
    "LAYOUT_PARSE_FAILED": "The report layout is corrupted.",
}

UNEXPECTED_ERROR_MESSAGE = "Unexpected error while processing file."


class PbixError(Exception):
    """Raised when a report package cannot be opened as a report definition."""

    def __init__(self, code: PbixErrorCode, *, source: str | None = None) -> None:
        super().__init__(f"PBIX_ERROR:{code}")
        self.code = code
        self.source = source

    @property
    def display_message(self) -> str:
        return _DISPLAY_MESSAGES[self.code]


def user_facing_message(error: BaseException) -> str:
    """Map any loading/analysis failure to a safe message for batch status output."""

    if isinstance(error, PbixError):
        return error.display_message
    return UNEXPECTED_ERROR_MESSAGE
