"""Protocol constants for the streaming storage client."""

from pathlib import Path

# Ceiling for a single InsertObject message, payload plus checksums and the
# object spec carried by the first frame.
MAX_WRITE_REQUEST_SIZE = 2 * 1024 * 1024  # (2mb)
# Resumable uploads must send non-final pieces in multiples of this size.
CHUNK_SIZE_QUANTUM = 256 * 1024  # (256kb)
MAX_READ_CHUNK_SIZE = 2 * 1024 * 1024

DEFAULT_ENDPOINT = "storage.googleapis.com"

METHOD_INSERT_OBJECT = "InsertObject"
METHOD_START_RESUMABLE_WRITE = "StartResumableWrite"
METHOD_QUERY_WRITE_STATUS = "QueryWriteStatus"
METHOD_GET_OBJECT_MEDIA = "GetObjectMedia"
METHOD_DELETE_OBJECT = "DeleteObject"

# Frame traffic is logged once per this many transfers.
FRAME_LOG_INTERVAL = 100

CONFIG_DIR = Path.home() / ".blobstream"
PROFILES_DIR_NAME = "profiles"
