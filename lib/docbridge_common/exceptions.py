"""
Custom exceptions for DocBridge adapters.

Raised inside the AWS and HTTP adapters only. Component boundaries convert
them into ``Err`` results (see ``docbridge_common.result``).
"""


class DocBridgeError(Exception):
    """Base exception for DocBridge errors."""


class SourceApiError(DocBridgeError):
    """Error talking to the source service API."""

    def __init__(
        self,
        url: str,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        self.url = url
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(f"Request to {url} failed: {message}")


class StorageError(DocBridgeError):
    """Error reading or writing content records or assets."""


class SideloadError(DocBridgeError):
    """Error downloading or storing a single remote asset."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Unable to sideload {url}: {message}")
