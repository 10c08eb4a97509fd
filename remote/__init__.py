"""
Algebrix Remote - fetching problem batches from the published bucket.
"""

from remote.batch_source import FetchResult, RemoteBatchSource

__all__ = [
    "FetchResult",
    "RemoteBatchSource",
]
