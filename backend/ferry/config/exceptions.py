"""
Configuration-related exceptions for ferry.

This module centralizes all configuration-related exceptions to provide
consistent error handling across settings, configuration file loading,
and pre-flight mapping validation.
"""


class ConfigurationError(Exception):
    """
    Raised when configuration loading or validation fails.
    
    This exception is used for all configuration-related errors including:
    - Config file loading issues (permissions, not found, etc.)
    - YAML/JSON parsing errors
    - Pydantic validation failures
    - Missing Datadog credentials
    - Monitors referencing services without a usable mapping
    
    A ConfigurationError is always fatal: it is raised before any
    monitor is modified.
    """
    pass
