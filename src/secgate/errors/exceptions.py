"""Custom exception classes for secgate."""


class SecGateError(Exception):
    """Base exception for secgate."""

    def __init__(self, code: str, message: str, details=None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(SecGateError):
    """Configuration or input validation failure, raised at creation time."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(SecGateError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__("NOT_FOUND", f"{resource} '{resource_id}' not found")


class ConflictError(SecGateError):
    """Resource state conflict."""

    def __init__(self, message: str):
        super().__init__("CONFLICT", message)


class ScanFailedError(SecGateError):
    """The scan itself could not be carried out (distinct from a failed gate)."""

    def __init__(self, message: str, details=None):
        super().__init__("SCAN_FAILED", message, details)


class ToolExecutionError(SecGateError):
    """A required scanner ran but produced no usable report."""

    def __init__(self, tool: str, message: str, details=None):
        self.tool = tool
        super().__init__("TOOL_EXECUTION_ERROR", f"{tool} scan failed: {message}", details)
