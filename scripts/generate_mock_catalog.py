import argparse

import numpy as np
import pandas as pd

# (market code, hub city, state, lat, lon, hub population)
MARKET_HUBS = [
    ("IL_CHI", "Chicago", "IL", 41.8781, -87.6298, 2_700_000),
    ("IL_ROC", "Rockford", "IL", 42.2711, -89.0940, 148_000),
    ("IL_PEO", "Peoria", "IL", 40.6936, -89.5890, 113_000),
    ("IN_GAR", "Gary", "IN", 41.5934, -87.3464, 69_000),
    ("IN_SBN", "South Bend", "IN", 41.6764, -86.2520, 103_000),
    ("IN_IND", "Indianapolis", "IN", 39.7684, -86.1581, 887_000),
    ("IN_LAF", "Lafayette", "IN", 40.4167, -86.8753, 71_000),
    ("WI_MKE", "Milwaukee", "WI", 43.0389, -87.9065, 577_000),
    ("WI_MAD", "Madison", "WI", 43.0731, -89.4012, 269_000),
    ("MI_KAL", "Kalamazoo", "MI", 42.2917, -85.5872, 76_000),
    ("GA_ATL", "Atlanta", "GA", 33.7490, -84.3880, 498_000),
    ("GA_MAC", "Macon", "GA", 32.8407, -83.6324, 153_000),
    ("GA_ATH", "Athens", "GA", 33.9519, -83.3576, 127_000),
    ("GA_ROM", "Rome", "GA", 34.2570, -85.1647, 37_000),
    ("GA_LAG", "LaGrange", "GA", 33.0393, -85.0313, 31_000),
    ("GA_GVL", "Gainesville", "GA", 34.2979, -83.8241, 42_000),
    ("AL_ANN", "Anniston", "AL", 33.6598, -85.8316, 21_000),
    ("TN_CHA", "Chattanooga", "TN", 35.0456, -85.3097, 181_000),
    ("SC_AND", "Anderson", "SC", 34.5034, -82.6501, 28_000),
    ("GA_CSG", "Columbus", "GA", 32.4610, -84.9877, 206_000),
    ("MT_BIL", "Billings", "MT", 45.7833, -108.5007, 117_000),
    ("WY_SHR", "Sheridan", "WY", 44.7972, -106.9562, 18_000),
]


def generate_mock_catalog(cities_per_market=12, spread_degrees=0.35, corrupt_rows=5, seed=7, output_file="mock_cities.csv"):
    """
    Generates a cities catalog for exercising the crawl engine.
    Every market gets its hub city plus satellite towns scattered around it,
    so radius searches see several cities per market and have to pick one
    representative each. A few deliberately corrupt rows (missing market,
    out-of-range coordinates) exercise the eligibility gates.
    """
    rng = np.random.default_rng(seed)
    rows = []

    for code, hub, state, lat, lon, population in MARKET_HUBS:
        rows.append({
            "city": hub,
            "state_or_province": state,
            "zip": f"{rng.integers(10000, 99999)}",
            "latitude": round(lat, 6),
            "longitude": round(lon, 6),
            "kma_code": code,
            "here_verified": True,
            "population": population,
            "equipment_bias": "V,R",
        })

        for town_index in range(cities_per_market - 1):
            rows.append({
                "city": f"{hub} Satellite {town_index + 1}",
                "state_or_province": state,
                "zip": f"{rng.integers(10000, 99999)}",
                "latitude": np.round(lat + rng.uniform(-spread_degrees, spread_degrees), 6),
                "longitude": np.round(lon + rng.uniform(-spread_degrees, spread_degrees), 6),
                "kma_code": code,
                "here_verified": bool(rng.random() < 0.6),
                "population": int(rng.integers(2_000, 60_000)),
                "equipment_bias": rng.choice(["V", "R", "F", "V,F"]),
            })

    for corrupt_index in range(corrupt_rows):
        rows.append({
            "city": f"Broken Row {corrupt_index + 1}",
            "state_or_province": "XX",
            "zip": "",
            "latitude": 999.0 if corrupt_index % 2 else np.nan,
            "longitude": -87.0,
            "kma_code": None if corrupt_index % 2 == 0 else "XX_BAD",
            "here_verified": False,
            "population": np.nan,
            "equipment_bias": "",
        })

    df = pd.DataFrame(rows)
    df.to_csv(output_file, index=False)
    print(f"✅ Generated {len(df)} catalog rows across {len(MARKET_HUBS)} markets and saved to '{output_file}'")

    print("\nCities per market:")
    counts = df["kma_code"].value_counts().head(5)
    for code, count in counts.items():
        print(f"  {code}: {count} cities")
    return df


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a mock cities catalog CSV.")
    parser.add_argument("--cities-per-market", type=int, default=12)
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--output", default="mock_cities.csv")
    args = parser.parse_args()

    generate_mock_catalog(cities_per_market=args.cities_per_market, seed=args.seed, output_file=args.output)
