#!/usr/bin/env python3
"""Price a book of Bermudan puts by Longstaff-Schwartz regression.

Usage
-----
    python scripts/price_bermudan.py --input book.csv --output prices.json
    python scripts/price_bermudan.py --input book.csv --output prices.json --n-paths 50000 --seed 7

Input CSV format
----------------
    id,S0,K,T,r,sigma,exercises
    put-1,36,40,1.0,0.06,0.2,50
    put-2,40,40,2.0,0.06,0.4,50
    ...

Output JSON format
------------------
    {
      "put-1": {"in_sample": ..., "out_of_sample": ..., "coefficients": [[...], ...]},
      ...
    }
"""

from __future__ import annotations
import argparse
import csv
import json
import logging
import sys
from pathlib import Path

# Allow running from repo root: python scripts/price_bermudan.py
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from quantopt.cli import run_bermudan_put


def _read_book(path: str) -> list[dict]:
    """Read the trade book, one Bermudan put per row."""
    with open(path, newline="") as f:
        return [
            {
                "id": row["id"],
                "S0": float(row["S0"]),
                "K": float(row["K"]),
                "T": float(row["T"]),
                "r": float(row["r"]),
                "sigma": float(row["sigma"]),
                "exercises": int(row.get("exercises") or 50),
            }
            for row in csv.DictReader(f)
        ]


def main():
    parser = argparse.ArgumentParser(
        description="Price Bermudan puts with Longstaff-Schwartz."
    )
    parser.add_argument("--input", required=True, help="Path to trade book CSV")
    parser.add_argument("--output", required=True, help="Path to output JSON")
    parser.add_argument("--n-paths", type=int, default=20_000)
    parser.add_argument("--degree", type=int, default=3)
    parser.add_argument("--family", default="monomial")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")

    book = _read_book(args.input)
    print(f"Loaded {len(book)} trades.")

    results: dict[str, dict] = {}
    for trade in book:
        res = run_bermudan_put(
            trade["S0"], trade["K"], trade["T"], trade["r"], trade["sigma"],
            exercises=trade["exercises"], n_paths=args.n_paths,
            degree=args.degree, family=args.family, seed=args.seed,
        )
        results[trade["id"]] = res
        print(f"  {trade['id']}: in-sample={res['in_sample']:.4f} "
              f"out-of-sample={res['out_of_sample']:.4f}")

    with open(args.output, "w") as f:
        json.dump(results, f, indent=2)
    print(f"\nPrices written to {args.output}")


if __name__ == "__main__":
    main()
