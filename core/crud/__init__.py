"""
Ledgerline CRUD — shared HTTP-shaped errors for command handlers.
"""

from core.crud.errors import CrudHttpError

__all__ = ["CrudHttpError"]
