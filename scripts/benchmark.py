"""HTTP benchmark for the article feed listings.

Two passes against a running server (seed it first with scripts/seed.py):

1. Fixed requests repeated N times: latency percentiles and the mean
   X-Query-Count, with and without a viewer.
2. A cursor walk over the whole listing, checking that the per-page
   query count stays flat and that no article is delivered twice.
"""
import argparse
import asyncio
import statistics
import time

import httpx

BASE_URL = "http://localhost:8000"

ENDPOINTS = [
    ("articles limit=10", "/api/v1/articles", {}),
    ("articles limit=100", "/api/v1/articles?limit=100", {}),
    ("articles limit=100 as viewer", "/api/v1/articles?limit=100", {"X-User-Id": "1"}),
    ("feed limit=20", "/api/v1/articles/feed?limit=20", {"X-User-Id": "1"}),
    ("favorites limit=20", "/api/v1/articles/favorites?limit=20", {"X-User-Id": "1"}),
    ("health", "/health", {}),
]


def _percentile(times: list[float], fraction: float) -> float:
    ordered = sorted(times)
    return round(ordered[min(int(len(ordered) * fraction), len(ordered) - 1)], 2)


async def benchmark_endpoint(
    client: httpx.AsyncClient, name: str, path: str, headers: dict, iterations: int = 50
) -> dict:
    times: list[float] = []
    query_counts: list[int] = []
    errors = 0

    # Warmup
    for _ in range(3):
        try:
            await client.get(f"{BASE_URL}{path}", headers=headers)
        except httpx.HTTPError:
            pass

    for _ in range(iterations):
        try:
            start = time.perf_counter()
            resp = await client.get(f"{BASE_URL}{path}", headers=headers)
            elapsed = (time.perf_counter() - start) * 1000
        except httpx.HTTPError:
            errors += 1
            continue

        if resp.status_code != 200:
            errors += 1
            continue
        times.append(elapsed)
        if "x-query-count" in resp.headers:
            query_counts.append(int(resp.headers["x-query-count"]))

    if not times:
        return {"name": name, "error": f"All {iterations} requests failed"}

    return {
        "name": name,
        "avg_ms": round(statistics.mean(times), 2),
        "p50_ms": _percentile(times, 0.50),
        "p95_ms": _percentile(times, 0.95),
        "p99_ms": _percentile(times, 0.99),
        "queries": round(statistics.mean(query_counts), 1) if query_counts else "N/A",
        "errors": errors,
    }


async def walk_listing(client: httpx.AsyncClient, limit: int, headers: dict) -> dict:
    """Follow next_cursor from the first page to the last."""
    slugs: list[str] = []
    query_counts: set[int] = set()
    pages = 0
    params = {"limit": limit}
    start = time.perf_counter()

    while True:
        resp = await client.get(f"{BASE_URL}/api/v1/articles", params=params, headers=headers)
        resp.raise_for_status()
        body = resp.json()
        pages += 1
        slugs.extend(article["slug"] for article in body["data"])
        query_counts.add(int(resp.headers.get("x-query-count", -1)))
        cursor = body["meta"]["next_cursor"]
        if cursor is None:
            break
        params = {"limit": limit, "cursor": cursor}

    return {
        "pages": pages,
        "articles": len(slugs),
        "duplicates": len(slugs) - len(set(slugs)),
        "query_counts": sorted(query_counts),
        "total_s": round(time.perf_counter() - start, 2),
    }


async def run_benchmark(iterations: int = 50, walk_limit: int = 100):
    print("=" * 80)
    print(f"Article feed benchmark - {iterations} iterations per endpoint")
    print(f"Target: {BASE_URL}")
    print("=" * 80)

    async with httpx.AsyncClient() as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"ERROR: Cannot connect to {BASE_URL} - {e}")
            return
        if resp.status_code != 200:
            print(f"ERROR: Health check failed ({resp.status_code})")
            return
        print(f"Health: {resp.json()}")

        print()
        print(f"{'Endpoint':<32} {'Avg':>9} {'P50':>9} {'P95':>9} {'P99':>9} {'Queries':>8} {'Err':>4}")
        print("-" * 80)

        for name, path, headers in ENDPOINTS:
            result = await benchmark_endpoint(client, name, path, headers, iterations)
            if "error" in result:
                print(f"{result['name']:<32} {'ERROR':>9}")
                continue
            print(
                f"{result['name']:<32} "
                f"{result['avg_ms']:>7.1f}ms "
                f"{result['p50_ms']:>7.1f}ms "
                f"{result['p95_ms']:>7.1f}ms "
                f"{result['p99_ms']:>7.1f}ms "
                f"{str(result['queries']):>8} "
                f"{result['errors']:>4}"
            )

        print("-" * 80)
        for label, headers in (("anonymous", {}), ("viewer 1", {"X-User-Id": "1"})):
            walk = await walk_listing(client, walk_limit, headers)
            print(
                f"Cursor walk ({label}, limit={walk_limit}): {walk['articles']} articles in "
                f"{walk['pages']} pages, {walk['total_s']}s, "
                f"duplicates={walk['duplicates']}, queries/page={walk['query_counts']}"
            )

        print("\nBenchmark complete.")


def main():
    global BASE_URL
    parser = argparse.ArgumentParser(description="Benchmark the article feed API")
    parser.add_argument("-n", "--iterations", type=int, default=50, help="Iterations per endpoint")
    parser.add_argument("--walk-limit", type=int, default=100, help="Page size for the cursor walk")
    parser.add_argument("--base-url", default=BASE_URL, help="API base URL")
    args = parser.parse_args()

    BASE_URL = args.base_url
    asyncio.run(run_benchmark(args.iterations, args.walk_limit))


if __name__ == "__main__":
    main()
