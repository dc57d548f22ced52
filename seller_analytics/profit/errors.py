"""
Profit engine exceptions.

Each exception carries the HTTP status the API layer answers with.
"""


class ProfitEngineError(Exception):
    """Base class for errors raised by the reporting engine"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ProfitEngineError):
    """Missing or malformed filter, bad date range, unsupported enum value"""

    status_code = 400


class AccessDeniedError(ProfitEngineError):
    """Account or marketplace is not owned by the caller"""

    status_code = 403


class NotFoundError(ProfitEngineError):
    """Referenced record does not exist"""

    status_code = 404
