"""
Ledgerline Example Module — Todos
==================================
Reference module: a tenant/organization-scoped Todo with undoable
create / update / delete commands and custom fields.
"""
