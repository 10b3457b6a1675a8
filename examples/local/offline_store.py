#!/usr/bin/env python3
"""Offline development with LocalClient.

This example runs the same operations as the hosted service against the
in-process store, so no API key or network is needed:

    python examples/local/offline_store.py
"""

import asyncio

from orthanc import LocalClient
from orthanc.models import QueryOptions, SyncOptions


async def main() -> None:
    """Run the offline demo."""
    print("=" * 60)
    print("Orthanc LocalClient Demo")
    print("=" * 60)

    async with LocalClient() as client:
        user_id = "demo_user"

        # =====================================================================
        # Sync: raw text and chat messages
        # =====================================================================
        print("\n📝 Syncing memories...")

        result = await client.sync_text(
            user_id,
            "Hi. I live in Lisbon with my partner. I love hiking on weekends. Ok.",
            options=SyncOptions(category="profile", tags=["onboarding"]),
        )
        print(f"  Text sync stored {result.result.memories_inserted} memories")

        result = await client.sync_messages(
            user_id,
            [
                {"role": "user", "content": "My favorite coffee is a flat white"},
                {"role": "assistant", "content": "Noted, flat white it is!"},
            ],
        )
        print(f"  Message sync stored {result.result.memories_inserted} memories")

        # =====================================================================
        # Query: similarity search and intent detection
        # =====================================================================
        print("\n🔍 Querying memories...")

        for query in ["Do I love hiking?", "What do I like?", "coffee", "Where do I live?"]:
            response = await client.query(user_id, query, QueryOptions(match_count=3))
            print(f"\n  Query: \"{query}\" [{response.query_type}]")
            for content, score in zip(response.memories, response.scores, strict=True):
                print(f"    {score:.2f}  {content}")

        # =====================================================================
        # Batch: per-item success and failure
        # =====================================================================
        print("\n🧩 Editing memories...")

        memories = await client.export_all(user_id)
        batch = await client.delete_all_memories(user_id, [memories[0].id, "mem_missing"])
        print(f"  Deleted: {batch.results.deleted}, failed: {batch.results.failed}")
        for error in batch.errors or []:
            print(f"    operation {error.index}: {error.error}")

        print(f"\n  Stats: {client.get_stats()}")

    print(f"\n{'=' * 60}")
    print("Offline demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
