"""
Integrations package.

External systems the migration talks to.
"""

from .datadog import DatadogClient

__all__ = ["DatadogClient"]
