class PoligraphError(ValueError):
    """Base class for domain errors raised by the services."""


class NotFoundError(PoligraphError):
    pass


class InvalidOperationError(PoligraphError):
    pass
