"""
Exceptions raised by the Datadog API client.

Connectivity failures while listing monitors are fatal for a run; API
failures on individual update or webhook calls are caught by the
migration services and turned into per-monitor outcomes.
"""

from typing import Any, Dict, Optional


class DatadogError(Exception):
    """
    Base exception for all Datadog API errors.
    
    Provides common error attributes for logging and result reporting.
    """
    
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None, recoverable: bool = True):
        """
        Initialize Datadog error.
        
        Args:
            message: Human-readable error description
            context: Additional context data for debugging
            recoverable: Whether the run can continue past this error
        """
        super().__init__(message)
        self.context = context or {}
        self.recoverable = recoverable
        
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "context": self.context,
            "recoverable": self.recoverable
        }


class DatadogConnectivityError(DatadogError):
    """
    The Datadog API could not be reached or refused to list monitors.
    
    Non-recoverable: without the monitor list there is nothing to migrate.
    """
    
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


class DatadogApiError(DatadogError):
    """
    The Datadog API rejected a request.
    
    Carries the HTTP status code and the remote error text so callers can
    attribute a skip reason to the affected monitor.
    """
    
    def __init__(self, message: str, status_code: Optional[int] = None,
                 error_text: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=True)
        self.status_code = status_code
        self.error_text = error_text
        
    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            "status_code": self.status_code,
            "error_text": self.error_text
        })
        return result
