"""
Dataset Generator

Writes a synthetic catalog, composition document and sales export to
data/generated/ for trying the reconciliation flow end to end.
"""

import argparse
from pathlib import Path

from reconciler.data import DataGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a synthetic reconciliation dataset")
    parser.add_argument("--products", type=int, default=200)
    parser.add_argument("--compositions", type=int, default=20)
    parser.add_argument("--orders", type=int, default=500)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--output", default=str(OUTPUT_DIR))
    args = parser.parse_args()

    data = DataGenerator(args.output, seed=args.seed).generate_all(
        n_products=args.products,
        n_compositions=args.compositions,
        n_orders=args.orders,
    )

    print(f"📊 products.csv: {len(data['products']):,} rows")
    print(f"📊 compositions.json: {len(data['compositions']):,} compositions")
    print(f"📊 sales.csv: {len(data['sales']):,} rows")
    print(f"✅ Written to {args.output}")
