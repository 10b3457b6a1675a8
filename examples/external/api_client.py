#!/usr/bin/env python3
"""Hosted service client demonstration.

Set an API key (and optionally an endpoint) before running:

    export ORTHANC_API_KEY=sk-...
    export ORTHANC_ENDPOINT=http://localhost:3000   # optional
    python examples/external/api_client.py
"""

import asyncio

from orthanc import CacheConfig, ErrorKind, OrthancClient, OrthancError
from orthanc.logging import configure_logging
from orthanc.models import MemoryQuery, QueryOptions


async def main() -> None:
    """Run the API client demo."""
    configure_logging(level="INFO", format="text")

    print("=" * 60)
    print("Orthanc API Demo")
    print("=" * 60)

    try:
        client = OrthancClient(cache=CacheConfig(enabled=True, ttl_seconds=30))
    except OrthancError as e:
        print(f"\n❌ {e.message}")
        return

    async with client:
        # =====================================================================
        # Health Check
        # =====================================================================
        print("\n🏥 Checking service health...")
        try:
            health = await client.health()
        except OrthancError as e:
            if e.kind is ErrorKind.NETWORK:
                print(f"\n❌ Could not reach {client.config.endpoint}")
                return
            raise
        print(f"  Status: {health.status} (version {health.version})")

        user_id = "api_demo_user"

        # =====================================================================
        # Sync and query
        # =====================================================================
        print("\n📝 Syncing a conversation...")
        sync = await client.sync_messages(
            user_id,
            [
                {"role": "user", "content": "I have a dentist appointment on March 15th"},
                {"role": "user", "content": "I'm allergic to peanuts"},
            ],
        )
        print(f"  Status: {sync.status}, request id: {sync.request_metadata.request_id}")

        print("\n🔍 Querying...")
        results = await client.query_batch(
            [
                MemoryQuery(user_id=user_id, query="upcoming appointments"),
                MemoryQuery(
                    user_id=user_id,
                    query="food allergies",
                    options=QueryOptions(match_threshold=0.3),
                ),
            ]
        )
        for response in results:
            print(f"  [{response.query_type}] {response.memories}")
            metadata = response.request_metadata
            if metadata and metadata.rate_limit_remaining is not None:
                print(f"    rate limit remaining: {metadata.rate_limit_remaining}")

        # Served from the client cache, no request
        await client.query(user_id, "upcoming appointments")
        print(f"\n  Cache: {client.cache.stats}")

        # =====================================================================
        # Export
        # =====================================================================
        memories = await client.export_all(user_id)
        print(f"\n📦 Exported {len(memories)} memories")

    print(f"\n{'=' * 60}")
    print("API demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
