"""Domain layer — values, comparator, settings, registry, connection.

This layer depends only on stdlib. It performs no I/O and must never
import from services, plugins, or config.
"""
