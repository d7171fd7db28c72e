"""Marketplace management CLI.

Usage:
    python src/manage.py setup-db        # Create all tables
    python src/manage.py drop-db         # Drop all tables
    python src/manage.py release-funds   # Release every matured wallet credit
    python src/manage.py seed            # Load demo sellers, products and commissions
"""

import argparse
import json
import sys

from marketplace.domain import marketplace

DEMO_CATALOGUE = [
    {
        "seller_id": "seller-lahore-textiles",
        "category_id": "apparel",
        "title": "Hand-block printed kurta",
        "variants": [{"sku": "KRT-M", "price": 2400.0, "stock": 25}, {"sku": "KRT-L", "price": 2400.0, "stock": 20}],
    },
    {
        "seller_id": "seller-karachi-electronics",
        "category_id": "electronics",
        "title": "Wireless earbuds",
        "variants": [{"sku": "EB-BLK", "price": 5999.0, "stock": 40}],
    },
    {
        "seller_id": None,
        "category_id": "groceries",
        "title": "Basmati rice 5kg",
        "variants": [{"sku": "RICE-5", "price": 1850.0, "stock": 100}],
    },
]

DEMO_COMMISSIONS = [
    {"category_id": "apparel", "rate": 0.10, "description": "Apparel and textiles"},
    {"category_id": "electronics", "rate": 0.05, "description": "Consumer electronics"},
]


def setup_databases():
    from marketplace.utils.db import setup_db

    print("Initializing marketplace domain...")
    marketplace.init()
    print("Creating marketplace database schema...")
    providers = setup_db(marketplace)
    print(f"  schema ready on: {', '.join(providers) or 'no relational providers'}")
    print("Done.")


def drop_databases():
    from marketplace.utils.db import drop_db

    print("Initializing marketplace domain...")
    marketplace.init()
    print("Dropping marketplace database schema...")
    providers = drop_db(marketplace)
    print(f"  schema dropped on: {', '.join(providers) or 'no relational providers'}")
    print("Done.")


def release_funds():
    from marketplace.wallet.release import ReleaseAllHeldFunds

    marketplace.init()
    with marketplace.domain_context():
        result = marketplace.process(ReleaseAllHeldFunds(), asynchronous=False)
    print(f"Released {result['amount']:.2f} across {result['wallets']} wallet(s).")


def seed():
    from marketplace.catalogue.registration import RegisterProduct
    from marketplace.commission.management import SetCommissionsInBulk

    marketplace.init()
    with marketplace.domain_context():
        marketplace.process(SetCommissionsInBulk(entries=json.dumps(DEMO_COMMISSIONS)), asynchronous=False)
        for product in DEMO_CATALOGUE:
            result = marketplace.process(
                RegisterProduct(
                    title=product["title"],
                    seller_id=product["seller_id"],
                    category_id=product["category_id"],
                    variants=json.dumps(product["variants"]),
                ),
                asynchronous=False,
            )
            print(f"  {product['title']}: {result['product_id']}")
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Marketplace management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("release-funds", help="Release matured credits in every wallet")
    subparsers.add_parser("seed", help="Load demo products and commission rates")

    args = parser.parse_args()

    commands = {
        "setup-db": setup_databases,
        "drop-db": drop_databases,
        "release-funds": release_funds,
        "seed": seed,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)
    command()


if __name__ == "__main__":
    main()
