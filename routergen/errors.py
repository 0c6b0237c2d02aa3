"""Run-level errors raised by the router generator.

Schema irregularities are not errors: they degrade to the unknown type.
Everything that stops a run surfaces as one of the classes below.
"""

from __future__ import annotations


class RouterGenError(Exception):
    """Base class for generator failures."""


class InvalidSourceURL(RouterGenError):
    """The document URL is not an absolute http(s)/file URL.

    Raised before any I/O is attempted.
    """

    def __init__(self, url: str) -> None:
        super().__init__(
            f'Invalid swagger URL: "{url}". Please provide a valid URL'
            " starting with http:// or https://"
        )
        self.url = url


class SourceRetrievalError(RouterGenError):
    """The document could not be fetched or parsed."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Could not retrieve {url}: {reason}")
        self.url = url
        self.reason = reason


class GenerationFailed(RouterGenError):
    """A run aborted after URL validation; the cause is chained."""

    def __init__(self, cause: BaseException) -> None:
        reason = str(cause) or type(cause).__name__
        super().__init__(f"Failed to generate routers: {reason}")
