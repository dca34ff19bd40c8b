# Datadog integration package
from .client import DatadogClient
from .exceptions import DatadogApiError, DatadogConnectivityError, DatadogError

__all__ = ["DatadogClient", "DatadogError", "DatadogConnectivityError", "DatadogApiError"]
