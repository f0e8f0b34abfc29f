"""
Structured logging for the formation registry.
Operation and audit logging - every mutating call leaves a traceable line.
"""

import logging
import os
from typing import Any, Dict, List

# Fields whose values never reach the log verbatim
DEFAULT_SENSITIVE_FIELDS = ['content_hash', 'metadata', 'payload', 'secret', 'password']


class StructuredLogger:
    """Structured logger for registry, grant and store operations."""

    def __init__(self, name: str = "formation_vault"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("rejected", "failed"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_formation_operation(self, operation: str, formation_id: int, caller: str,
                                status: str = "success", details: Dict[str, Any] = None):
        """Log a registry mutation (create, update, secondary create)."""
        log_details = {"formation_id": formation_id, "caller": caller}
        if details:
            log_details.update(details)

        self.log_operation(f"formation.{operation}", status, log_details)

    def log_grant_operation(self, formation_id: int, entity: str, classification: str,
                            expires_at: int, status: str = "success"):
        """Log an access grant write."""
        log_details = {
            "formation_id": formation_id,
            "entity": entity,
            "classification": classification,
            "expires_at": expires_at
        }
        self.log_operation("formation.grant", status, log_details)

    def log_anomaly(self, operation: str, caller: str, code: int, kind: str, message: str = ""):
        """Log a rejected operation with its anomaly code."""
        log_details = {
            "caller": caller,
            "code": code,
            "kind": kind,
            "message": message[:100] if message else ""  # Limit message length
        }
        self.log_operation(f"formation.{operation}", "rejected", log_details)

    def log_store_operation(self, operation: str, provider: str, status: str = "success",
                            details: Dict[str, Any] = None):
        """Log a storage backend event (init, rollback, health)."""
        log_details = {"provider": provider}
        if details:
            log_details.update(details)

        self.log_operation(f"store.{operation}", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None,
                sensitive_fields: List[str] = None):
    """General audit event logging with redaction of sensitive fields.

    AUDIT_LEVEL controls what is emitted:
      minimal  - only events whose type ends in ".rejected"
      standard - every event, identifiers only
      verbose  - every event, identifiers plus sanitized payload
    """
    audit_level = os.getenv("AUDIT_LEVEL", "standard")
    if audit_level == "minimal" and not event_type.endswith(".rejected"):
        return

    if sensitive_fields is None:
        sensitive_fields = DEFAULT_SENSITIVE_FIELDS

    log_details = identifiers.copy() if identifiers else {}

    if payload and audit_level == "verbose":
        log_details["payload"] = sanitize_payload(payload, sensitive_fields=sensitive_fields)

    logger.log_operation(event_type.replace(".", "_"), "audit", log_details)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = DEFAULT_SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, (list, tuple)):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
