#!/usr/bin/env python3
"""Live catalog verification script — run with network access.

Usage:
  python scripts/verify_catalog.py

Steps:
  Step 1: Show configuration
  Step 2: Department listing
  Step 3: Search ("vase")
  Step 4: Object detail + 404 handling
  Step 5: Orchestrated query through the caches (second run must be a cache hit)
"""

import asyncio
import os
import sys
import tempfile

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def step_header(n: int, title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  Step {n}: {title}")
    print(f"{'='*60}\n")


def ok(msg: str) -> None:
    print(f"  ✅ {msg}")


def fail(msg: str) -> None:
    print(f"  ❌ {msg}")


def info(msg: str) -> None:
    print(f"  ℹ️  {msg}")


async def step1_show_config():
    step_header(1, "Configuration")
    from collection_explorer.config import settings

    ok(f"API base: {settings.met_api_base_url}")
    ok(f"Cache TTL: {settings.cache_ttl_seconds}s | capacity: {settings.cache_max_entries}")
    ok(f"Storage backend: {settings.storage_backend}")
    return True


async def step2_departments():
    step_header(2, "Department listing")
    from collection_explorer.integrations.met_collection import MetCollectionClient

    departments = await MetCollectionClient().fetch_departments()
    if departments:
        ok(f"Got {len(departments)} departments")
        for d in departments[:3]:
            print(f"    - [{d.department_id}] {d.display_name}")
        return True
    fail("No departments returned — check network connectivity")
    return False


async def step3_search():
    step_header(3, "Search: 'vase'")
    from collection_explorer.integrations.met_collection import MetCollectionClient
    from collection_explorer.schemas import SearchParams

    result = await MetCollectionClient().search(SearchParams(q="vase"))
    if result.total and result.object_ids:
        ok(f"total={result.total} | first ids={result.object_ids[:5]}")
        return True
    fail("Search returned no ids")
    return False


async def step4_detail():
    step_header(4, "Object detail")
    from collection_explorer.errors import FetchError
    from collection_explorer.integrations.met_collection import MetCollectionClient
    from collection_explorer.schemas import NotFoundMarker

    client = MetCollectionClient()
    try:
        record = await client.fetch_detail(45734)
        ok(f"[{record.object_id}] {record.title[:60]} | {record.artist_display_name or 'unknown artist'}")
        missing = await client.fetch_detail(999999999)
    except FetchError as e:
        fail(f"Detail fetch failed: {e}")
        return False

    if isinstance(missing, NotFoundMarker):
        ok("Unknown id maps to NOT_FOUND")
        return True
    fail("Unknown id did not map to NOT_FOUND")
    return False


async def step5_orchestrator():
    step_header(5, "Orchestrated query with caches")
    from collection_explorer.cache import ObjectDetailCache, ObjectListCache
    from collection_explorer.cache.storage import FileStorageBackend
    from collection_explorer.integrations.met_collection import MetCollectionClient
    from collection_explorer.orchestrator.query_orchestrator import QueryOrchestrator
    from collection_explorer.orchestrator.schemas import QueryParams, QueryStatus

    with tempfile.TemporaryDirectory() as tmp:
        storage = FileStorageBackend(tmp)
        list_cache, detail_cache = ObjectListCache(storage), ObjectDetailCache(storage)
        orchestrator = QueryOrchestrator(MetCollectionClient(), list_cache, detail_cache)

        params = QueryParams(q="vase", page=1)
        snapshot = await orchestrator.update(params)
        info(f"First run: status={snapshot.status.value} total={snapshot.total} shown={len(snapshot.objects)}")
        await list_cache.drain()
        await detail_cache.drain()

        reopened = QueryOrchestrator(
            MetCollectionClient(), ObjectListCache(storage), ObjectDetailCache(storage),
        )
        again = await reopened.update(params)
        if again.status == QueryStatus.READY and len(again.objects) == len(snapshot.objects):
            ok("Second run served from the persisted page cache")
            return True
        fail(f"Second run: status={again.status.value}")
        return False


async def main():
    print("\n🏛️  Collection Explorer — Live Catalog Verification")
    print("=" * 60)

    results = {
        1: await step1_show_config(),
        2: await step2_departments(),
        3: await step3_search(),
        4: await step4_detail(),
        5: await step5_orchestrator(),
    }

    # Summary
    print(f"\n{'='*60}")
    print("  SUMMARY")
    print(f"{'='*60}")
    for step_n, passed in sorted(results.items()):
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"  Step {step_n}: {status}")

    total_passed = sum(1 for v in results.values() if v)
    print(f"\n  {total_passed}/{len(results)} steps passed")
    print(f"{'='*60}\n")

    sys.exit(0 if all(results.values()) else 1)


if __name__ == "__main__":
    asyncio.run(main())
