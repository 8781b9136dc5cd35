"""Exception hierarchy for the exporter.

Every failure raised by the fetch, parsing and correlation layers is an
``ExporterError`` so the polling loop can count and log it without
catching unrelated exceptions.
"""


class ExporterError(Exception):
    """Base class for all exporter failures.

    Attributes:
        layer: Which chain the failure came from ("consensus" or
            "execution"), when known
    """

    def __init__(self, message: str, layer: str | None = None) -> None:
        super().__init__(message)
        self.layer = layer

    def __str__(self) -> str:
        message = super().__str__()
        if self.layer:
            return f"[{self.layer}] {message}"
        return message


class NetworkError(ExporterError):
    """Transport failure or unusable HTTP status after retries."""


class ParseError(ExporterError):
    """A numeric, hex or JSON field could not be parsed."""


class InvalidBlockError(ExporterError):
    """A block response failed its sanity checks."""


class NotFoundError(ExporterError):
    """No execution block exists at the requested height."""
