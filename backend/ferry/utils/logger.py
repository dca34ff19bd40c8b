"""
Logging configuration and utilities for ferry.
"""

import logging
import re
import sys


class BearerTokenFilter(logging.Filter):
    """
    Filter that masks bearer tokens before records reach any handler.
    
    Webhook custom headers carry the incident.io token as
    ``Authorization: Bearer <token>``; debug tracing of webhook payloads
    must never print it.
    """
    
    _BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+")
    
    def filter(self, record: logging.LogRecord) -> bool:
        """
        Rewrite the record message with tokens masked.
        
        Args:
            record: Log record to filter
            
        Returns:
            Always True; records are rewritten, never suppressed
        """
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Leave records with broken format args alone
            return True
        
        if "Bearer" in message:
            record.msg = self._BEARER_PATTERN.sub(r"\1***", message)
            record.args = ()
        
        return True


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure logging to stdout only.
    
    Args:
        log_level: The log level to use (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        
    Raises:
        ValueError: If log_level is not a valid logging level name
    """
    log_level_upper = log_level.upper()
    if log_level_upper not in logging._nameToLevel:
        raise ValueError(f"Invalid log level: {log_level}")
    
    numeric_level = logging._nameToLevel[log_level_upper]
    
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(BearerTokenFilter())
    
    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[handler],
        force=True  # Override any existing configuration
    )
    
    logging.getLogger('ferry').setLevel(numeric_level)
    
    # httpx logs every HTTP request at INFO level, one per monitor update
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.
    
    Args:
        name: The name of the logger, typically the module name
        
    Returns:
        logging.Logger: Configured logger instance
    """
    if not name.startswith("ferry"):
        name = f"ferry.{name}"
    
    return logging.getLogger(name)


def get_module_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for a specific module.
    
    Args:
        module_name: The module name (e.g., __name__)
        
    Returns:
        logging.Logger: Configured logger instance
    """
    if module_name.startswith("ferry."):
        module_name = module_name[6:]  # Remove 'ferry.' prefix
    
    return get_logger(module_name)
