"""In-process substitute for the Orthanc service.

Example:
    ```python
    from orthanc.local import LocalClient

    client = LocalClient()
    await client.sync_text("user_1", "User likes coffee. User likes hiking.")
    result = await client.query("user_1", "Do I like coffee?")
    result.query_type  # "graph_relation"
    ```
"""

from .client import LocalClient
from .scoring import detect_query_type, similarity, split_sentences, tokenize
from .store import LocalMemoryStore, StoredMemory

__all__ = [
    "LocalClient",
    "LocalMemoryStore",
    "StoredMemory",
    "detect_query_type",
    "similarity",
    "split_sentences",
    "tokenize",
]
