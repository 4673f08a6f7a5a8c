class ReceiptIngestError(Exception):
    """Base class for pipeline errors."""


class ExtractionError(ReceiptIngestError):
    """No extraction strategy produced usable text."""


class UnsupportedMimeTypeError(ReceiptIngestError):
    def __init__(self, mime_type: str | None):
        self.mime_type = mime_type
        super().__init__(f"Unsupported file type: {mime_type or '<missing>'}")


class UnusableModelOutput(ReceiptIngestError):
    """The model answered, but nothing in the answer can be used. Recovered by fallback."""


class TransientUpstreamOverload(ReceiptIngestError):
    """Rate limit, overload, timeout or connection drop. Worth retrying."""


class ModelUnavailableError(ReceiptIngestError):
    """Non-transient model failure (bad credentials, unknown model, rejected request)."""
