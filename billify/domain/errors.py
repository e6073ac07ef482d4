# billify/domain/errors.py


class BillifyError(Exception):
    """Base class for every error raised by the billify domain layer."""


class NotFoundError(BillifyError):
    """A referenced template, component, record or component type does not exist."""


class InvalidInputError(BillifyError):
    """Input rejected before any remote call was attempted."""


class RemoteServiceError(BillifyError):
    """Storage, object-storage or HTTP call failure."""


class DegradedDeliveryError(BillifyError):
    """An optional pipeline stage failed; never escapes the pipeline."""
