"""
Operations Layer

Business rules for score reports, kept free of Discord and database details.

Architecture:
- Database layer: game record persistence (database/)
- Operations layer: permissions, ledger publishing and the report lifecycle
- Cog layer: Discord event intake and chat side effects (cogs/)

Modules:
- permissions: PermissionPolicy, who may certify or force-validate
- ledger: LedgerPublisher contract and the database-backed ledger
- lifecycle: transition() and LifecycleController
"""
