import argparse
import csv
import logging
import os
import time

from catalog.client import CatalogClient
from catalog.market_cache import MarketCache
from catalog.memory import InMemoryCatalog
from crawl import AnchorQuery, SearchError, SearchRequest, search
from crawl.policy import default_policy, sparse_region_policy


def build_catalog(args):
    if args.catalog_csv:
        base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        path = args.catalog_csv if os.path.isabs(args.catalog_csv) else os.path.join(base_dir, args.catalog_csv)
        catalog = InMemoryCatalog.from_csv(path)
        print(f"Loaded {len(catalog)} catalog rows from {path}.")
        return catalog

    # CATALOG_BASE_URL / CATALOG_API_KEY from the environment (.env)
    return CatalogClient()


def parse_anchor(text):
    """'Chicago,IL' -> by name, '41.85,-87.65' -> by coordinates."""
    first, _, second = text.partition(",")
    try:
        return AnchorQuery.by_coordinates(float(first), float(second))
    except ValueError:
        return AnchorQuery.by_name(first.strip(), second.strip())


def run_lane_search():
    parser = argparse.ArgumentParser(description="Find market-diverse pickup/delivery pairs for a lane.")
    parser.add_argument("origin", help="'City,ST' or 'lat,lon'")
    parser.add_argument("destination", help="'City,ST' or 'lat,lon'")
    parser.add_argument("--catalog-csv", help="Use a CSV snapshot instead of the HTTP catalog")
    parser.add_argument("--equipment", default="V")
    parser.add_argument("--pairs", type=int, default=5)
    parser.add_argument("--ceiling", type=float, default=100.0)
    parser.add_argument("--sparse", action="store_true", help="Use the sparse-region policy")
    parser.add_argument("--adjacency", action="store_true", help="Load a market cache for the adjacent-market stage")
    parser.add_argument("--output", help="Write the pairs to this CSV")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    catalog = build_catalog(args)
    market_cache = MarketCache.load(catalog) if args.adjacency else None
    policy = sparse_region_policy() if args.sparse else default_policy()

    request = SearchRequest(
        origin=parse_anchor(args.origin),
        destination=parse_anchor(args.destination),
        equipment=args.equipment,
        target_pairs=args.pairs,
        radius_ceiling=args.ceiling,
    )

    print("=== LANE SEARCH ===")
    start_time = time.time()
    try:
        result = search(request, catalog, policy=policy, market_cache=market_cache)
    except SearchError as exc:
        print(f"[FAILED] {exc}")
        raise SystemExit(1)

    print(f"{result.origin.name}, {result.origin.region} ({result.origin.market}) -> "
          f"{result.destination.name}, {result.destination.region} ({result.destination.market}) "
          f"in {time.time() - start_time:.2f}s\n")

    for rank, pair in enumerate(result.pairs, start=1):
        tag = f" [{pair.relaxation.value}]" if pair.relaxation else ""
        print(f"{rank}. {pair.pickup.location.name}, {pair.pickup.location.region} ({pair.pickup_market}, {pair.pickup_distance:.1f} mi)"
              f" -> {pair.delivery.location.name}, {pair.delivery.location.region} ({pair.delivery_market}, {pair.delivery_distance:.1f} mi)"
              f"  score={pair.score:.1f}{tag}")

    diagnostics = result.diagnostics
    print("\n--- Diagnostics ---")
    print(f"Radius used: {diagnostics.radius_used:.0f} mi (pickup {diagnostics.pickup_radius:.0f}, delivery {diagnostics.delivery_radius:.0f})")
    print(f"Unique markets: pickup {diagnostics.pickup_markets}, delivery {diagnostics.delivery_markets}")
    print(f"Stages: {[stage.value for stage in diagnostics.stages]}")
    if diagnostics.shortfall_reason:
        print(f"Shortfall: {diagnostics.shortfall_reason}")

    if args.output:
        with open(args.output, "w", newline="") as file:
            writer = csv.writer(file)
            writer.writerow(["rank", "pickup_city", "pickup_state", "pickup_kma", "pickup_miles",
                             "delivery_city", "delivery_state", "delivery_kma", "delivery_miles", "score", "relaxation"])
            for rank, pair in enumerate(result.pairs, start=1):
                writer.writerow([
                    rank,
                    pair.pickup.location.name, pair.pickup.location.region, pair.pickup_market, round(pair.pickup_distance, 1),
                    pair.delivery.location.name, pair.delivery.location.region, pair.delivery_market, round(pair.delivery_distance, 1),
                    pair.score,
                    pair.relaxation.value if pair.relaxation else "",
                ])
        print(f"Results written to '{args.output}'.")


if __name__ == "__main__":
    run_lane_search()
