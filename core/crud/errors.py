"""
Ledgerline CRUD — Errors
=========================
Handler-raised failures that carry an HTTP status and a JSON body.

Command handlers raise these for validation, not-found and missing
scope conditions. The bus never catches them; HTTP adapters map the
status and body straight onto the response.
"""

from __future__ import annotations

from typing import Any, Optional


class CrudHttpError(Exception):
    """Failure with a transport status and a JSON-serializable body."""

    def __init__(self, status: int, body: Optional[dict[str, Any]] = None):
        self.status = int(status)
        self.body = dict(body or {})
        message = self.body.get("error") or f"HTTP {self.status}"
        super().__init__(str(message))

    @property
    def message(self) -> str:
        return str(self.body.get("error") or f"HTTP {self.status}")
