class EnvGateError(Exception):
    """Base exception for all errors raised inside envgate."""
    status_code: int = 500

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

class ValidationError(EnvGateError):
    """Raised when caller input has the wrong shape."""
    status_code = 400

class MissingInput(EnvGateError):
    """Raised when a required field is absent."""
    status_code = 400

class InvalidSubdomain(ValidationError):
    """Raised when a subdomain is not a valid DNS label or glob pattern."""
    pass

class ParameterError(ValidationError):
    """Base class for launch parameter errors."""
    def __init__(self, message: str, name: str, details: dict = None):
        super().__init__(message, details)
        self.name = name

class MissingParameter(ParameterError, MissingInput):
    """Raised when a required launch parameter has no value and no default."""
    def __init__(self, name: str):
        super().__init__(f"lack require parameter: {name}", name)

class InvalidParameterValue(ParameterError):
    """Raised when a launch parameter does not match its configured rule."""
    def __init__(self, name: str):
        super().__init__(f"parameter {name} value is rule error", name)

class ParameterTooLong(ParameterError):
    """Raised when a launch parameter exceeds 255 unicode characters."""
    def __init__(self, name: str):
        super().__init__(
            f"parameter {name} value is too long(max 255 unicode characters)", name
        )

class PurgeRejected(ValidationError):
    """Raised when a purge request has an invalid duration or exclusion."""
    pass

class OrchestratorError(EnvGateError):
    """Raised when an orchestrator call fails. The message is the collaborator's text."""
    pass

class AccessCounterError(EnvGateError):
    """Raised when the access counter cannot answer."""
    pass

class ConcurrencyRejected(EnvGateError):
    """Raised when a reap is attempted while another one holds the purge lock."""
    status_code = 409
