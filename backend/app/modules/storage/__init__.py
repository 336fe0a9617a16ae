"""
Storage Module - year-partitioned JSON files

- One file per calendar year under DATA_DIR
- Bucket-level merge on save
- Atomic replace on write
"""

from .record_store import (
    RecordStore,
    get_record_store,
    ensure_data_dir,
)

__all__ = [
    "RecordStore",
    "get_record_store",
    "ensure_data_dir",
]
