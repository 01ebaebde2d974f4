"""Exception types shared across the library, retrieval and storage layers."""

from enum import Enum
from typing import Optional


class PagePalError(Exception):
    """Base error for predictable, reportable failures."""


class BookStateError(PagePalError, ValueError):
    """A book operation would break the chapter/content invariants.

    Raised instead of corrupting long-lived book state, e.g. for an
    out-of-range chapter index or an identifier collision in the store.
    """


class InvalidAddressError(PagePalError, ValueError):
    """An address could not be parsed into an http(s) URL."""


class FetchError(PagePalError):
    """A network request failed after all retries, or returned an error status."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.status = status


class AssemblyErrorKind(Enum):
    NO_BOOK = "no_book"
    NO_TITLE = "no_title"
    NETWORK = "network"


class BookAssemblyError(PagePalError):
    """Building a book from a web address failed.

    The kind tells a front end which banner to show: nothing could be
    fetched, the book was fetched but carries no usable title, or the
    network is unreachable.
    """

    MESSAGES = {
        AssemblyErrorKind.NO_BOOK: "No book could be fetched from this address.",
        AssemblyErrorKind.NO_TITLE: "The book was fetched but has no valid title.",
        AssemblyErrorKind.NETWORK: "Network unreachable. Please check your connection.",
    }

    def __init__(self, kind: AssemblyErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        message = self.MESSAGES[kind]
        super().__init__(f"{message} {detail}".strip())

    @property
    def user_message(self) -> str:
        return self.MESSAGES[self.kind]
