"""Domain layer for ledgersync application.

Services are imported from their modules directly; the database layer
depends on ``ledgersync.domain.entities``.
"""
