class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised when scheduling input is malformed. Never retried."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class ConflictError(AppError):
    """Raised when a candidate booking violates one or more named constraints."""
    def __init__(self, message: str, reasons: list[str] = None, conflicts: list[dict] = None):
        self.reasons = list(reasons or [])
        details = {"reasons": self.reasons, "conflicts": list(conflicts or [])}
        super().__init__(message, status_code=409, details=details)

class CapacityExhaustedError(AppError):
    """Raised when no room/slot combination satisfies the request within the search space."""
    def __init__(self, message: str, search: dict = None):
        self.search = dict(search or {})
        super().__init__(message, status_code=409, details={"search": self.search})

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)
