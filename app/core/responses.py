"""
Standardized API response envelopes.
Every JSON endpoint except the toggle answers with ``{success, data|error, metadata}``.
"""

from typing import Any, Dict, Optional
from datetime import datetime, timezone


def _metadata(status_code: int) -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status_code": status_code
    }


class ResponseHandler:
    """Builds the success and error envelopes."""

    @staticmethod
    def success(data: Any = None, status_code: int = 200) -> Dict[str, Any]:
        """
        Wrap ``data`` in a success envelope.

        ``status_code`` is echoed in the metadata; the route decorator sets
        the actual HTTP status.
        """
        return {
            "success": True,
            "data": data,
            "metadata": _metadata(status_code)
        }

    @staticmethod
    def error(
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Error envelope used by the application exception handlers.

        Args:
            code: Machine readable error code, e.g. ``INVALID_TABLE``
            message: Client safe message
            status_code: HTTP status code
            details: Extra context, never backend error text for 5xx
        """
        return {
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "details": details or {}
            },
            "metadata": _metadata(status_code)
        }
