"""Range-addressable audio streaming.

- ranges: Range header -> RangeSpec
- blobstore: forward-only readers over stored audio
- copy: bounded, flushed copy loop
- orchestrator: ties the above together per request
"""

from .blobstore import (
    BlobReader,
    BlobStore,
    LocalFileBlobStore,
    SqliteBlobStore,
    create_blob_store,
    skip,
)
from .copy import DEFAULT_CHUNK_SIZE, copy_exactly, iter_exactly
from .orchestrator import TrackStream, TrackStreamer, content_disposition
from .ranges import RangeSpec, parse_range, unsatisfied_content_range

__all__ = [
    "BlobReader",
    "BlobStore",
    "LocalFileBlobStore",
    "SqliteBlobStore",
    "create_blob_store",
    "skip",
    "DEFAULT_CHUNK_SIZE",
    "copy_exactly",
    "iter_exactly",
    "TrackStream",
    "TrackStreamer",
    "content_disposition",
    "RangeSpec",
    "parse_range",
    "unsatisfied_content_range",
]
