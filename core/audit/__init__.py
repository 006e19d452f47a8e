"""
Ledgerline Core Audit — Action Log Store
==========================================
One ActionLog row per executed command. Rows are never hard-deleted;
only the execution state moves (done → undone → redone).

Import models and the service from their modules directly
(core.audit.models, core.audit.service); this package stays import-light
so Django can load the app registry first.
"""
