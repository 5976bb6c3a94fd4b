"""Storage platforms.

Each subpackage implements a StorageBackend and registers a factory
with BackendRegistry when imported.
"""
