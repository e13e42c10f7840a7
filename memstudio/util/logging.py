"""
Structured operation logging for the record store, vector index and search core.
"""

import logging
from typing import Any, Dict, List


class StructuredLogger:
    """Structured logger for memory, vector, search and API operations."""

    def __init__(self, name: str = "memory_studio"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {sanitize_payload(details)}"

        self.logger.log(level, message)

    def log_memory_operation(self, operation: str, memory_id: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a record store operation."""
        log_details = {"memory_id": memory_id}
        if details:
            log_details.update(details)

        self.log_operation(f"memory.{operation}", status, log_details)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation(f"vector.{operation}", status, log_details, level=level)

    def log_search(self, query: str, semantic_count: int, keyword_count: int, returned: int, hybrid_weight: float):
        """Log a hybrid search execution."""
        self.log_operation("search.hybrid", "success", {
            "query": query[:50] + "..." if len(query) > 50 else query,
            "semantic_candidates": semantic_count,
            "keyword_candidates": keyword_count,
            "returned": returned,
            "hybrid_weight": hybrid_weight,
        })

    def log_db_retry(self, attempt: int, max_retries: int, delay: float, error: str):
        """Log a retried store operation after a busy/locked error."""
        self.log_operation("db.retry", "retrying", {
            "attempt": attempt,
            "max_retries": max_retries,
            "delay_seconds": delay,
            "error": error,
        }, level=logging.WARNING)

    def log_api_error(self, path: str, error_type: str, status_code: int, message: str):
        """Log an error rendered by the API layer."""
        level = logging.ERROR if status_code >= 500 else logging.WARNING
        self.log_operation("api.error", error_type, {
            "path": path,
            "status_code": status_code,
            "message": message,
        }, level=level)

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


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for operation logging."""
    if sensitive_fields is None:
        sensitive_fields = ['content', 'embedding', 'vector', 'secret', 'password']

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
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload


# Global logger instance
logger = StructuredLogger()
