# vectorkit/providers/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Provider adapters.

The Pinecone and pgvector adapters need optional SDKs and are not
imported here; import them from their modules:

    from vectorkit.providers.pinecone import PineconeProvider
    from vectorkit.providers.pgvector import PgvectorProvider
"""

from vectorkit.providers.base import ProviderAdapter
from vectorkit.providers.memory import MemoryProvider, matches_filter, similarity

__all__ = [
    "ProviderAdapter",
    "MemoryProvider",
    "matches_filter",
    "similarity",
]
