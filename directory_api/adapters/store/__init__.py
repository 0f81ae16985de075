"""Record store adapters - one interface, relational and key-value backends."""

from directory_api.adapters.store.base import AbstractRecordStore, SubmissionPage
from directory_api.adapters.store.factory import create_record_store
from directory_api.adapters.store.kv import KvRecordStore
from directory_api.adapters.store.sql import SqlRecordStore

__all__ = [
    "AbstractRecordStore",
    "KvRecordStore",
    "SqlRecordStore",
    "SubmissionPage",
    "create_record_store",
]
