"""Exception hierarchy shared by the pipeline, the stores and the service layer."""

from __future__ import annotations


class ConnectorError(Exception):
    """Base class for every failure raised by the connector."""


class ValidationError(ConnectorError, ValueError):
    """Rejected input: missing fields, duplicates, nothing to export."""


class NotFoundError(ValidationError):
    """The SKU id or alias key does not exist in the store."""


class NothingToExportError(ValidationError):
    """No matched, positive-quantity items are available for an IIF file."""


class StoreWriteError(ConnectorError, RuntimeError):
    """A backend could not persist a change."""


class OperationTimeoutError(ConnectorError, TimeoutError):
    """The operator-facing deadline elapsed before the operation finished."""


__all__ = [
    "ConnectorError",
    "ValidationError",
    "NotFoundError",
    "NothingToExportError",
    "StoreWriteError",
    "OperationTimeoutError",
]
