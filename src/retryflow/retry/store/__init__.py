"""
Retry record stores.

RetryRecordStore defines the contract and lifecycle rules; concrete stores
only supply storage.
"""

from retryflow.retry.store.base import RetryRecordStore
from retryflow.retry.store.json_file import JsonFileRetryRecordStore
from retryflow.retry.store.memory import InMemoryRetryRecordStore

__all__ = [
    "RetryRecordStore",
    "InMemoryRetryRecordStore",
    "JsonFileRetryRecordStore",
]
