class StatsError(Exception):
    """Base class for failures surfaced by the stats engines."""

    code = 'stats_error'
    status = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class NotFound(StatsError):
    code = 'not_found'
    status = 404


class InvalidArgument(StatsError):
    code = 'invalid_argument'
    status = 400


class Conflict(StatsError):
    code = 'conflict'
    status = 409


class StoreTimeout(StatsError):
    code = 'timeout'
    status = 504


class StoreUnavailable(StatsError):
    code = 'store_unavailable'
    status = 503


class PropagationFailure(StatsError):
    """Universal clock fan-out failed; logged, never returned to a caller."""

    code = 'propagation_failure'
    status = 502
