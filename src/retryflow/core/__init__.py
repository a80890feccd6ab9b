"""
Core library for the retry engine.

Subpackages:
    errors: exception hierarchy and error classification
    logging: structured logging setup and context
    utils: JSON serialization helpers

Modules:
    clock: injectable time source
    locks: per-key asyncio locking
"""
