#!/usr/bin/env python3
import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from shopify_magento.images import fetch_image_as_base64
from shopify_magento.magento_client import MagentoClient, MagentoConfig
from shopify_magento.models import AttributeCatalog
from shopify_magento.session import ImportSession
from shopify_magento.shopify_client import ShopifyConfig, ShopifySource, ShopifyStoreClient, parse_stores
from shopify_magento.state import SetProductValue
from shopify_magento.transform import PayloadOptions, describe_mapping
from shopify_magento.validation import classify_set


log = logging.getLogger(__name__)


def load_env_file(path: Optional[Path]) -> None:
    if path and path.exists():
        load_dotenv(path, override=False)


def fail(msg: str) -> None:
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(1)


def parse_overrides(items: List[str]) -> List[tuple]:
    out = []
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"--set expects FIELD=VALUE, got {item!r}")
        field, value = item.split("=", 1)
        out.append((field.strip(), value.strip()))
    return out


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Migrate one Shopify product into a Magento configurable product.")
    p.add_argument("--env-file", default="", help="Path to .env file (optional)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v for INFO, -vv for DEBUG)")
    p.add_argument("--search", required=True, help="Shopify product search term (title or handle)")
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("--sku", help="Existing Magento configurable SKU to attach variants to")
    target.add_argument("--new", action="store_true", help="Create a new configurable product (SKU from the product handle)")
    p.add_argument("--new-sku", default="", help="SKU for the new configurable product (default: handle, max 64 chars)")
    p.add_argument("--set", action="append", default=[], metavar="FIELD=VALUE", help="Override a product-level mapping value, e.g. manufacturer=42")
    p.add_argument("--dry-run", action="store_true", help="Print proposed mappings and payloads as JSON; submit nothing")
    p.add_argument("--publish", action="append", default=[], metavar="STORE_ID", help="Also create the product in this additional Shopify store (repeatable)")
    p.add_argument("--delay", type=float, default=float(os.getenv("VARIANT_DELAY", "0.5")), help="Seconds to wait between variant imports")
    p.add_argument("--attribute-set-id", type=int, default=int(os.getenv("MAGENTO_ATTRIBUTE_SET_ID", "4")), help="Magento attribute set id (default: 4)")
    p.add_argument("--no-images", action="store_true", help="Do not copy images into the Magento media gallery")
    return p.parse_args(argv)


def build_clients(args: argparse.Namespace):
    base_url = os.getenv("MAGENTO_BASE_URL", "").strip()
    token = os.getenv("MAGENTO_ACCESS_TOKEN", "").strip()
    store = os.getenv("SHOPIFY_STORE", "").strip().replace("https://", "").strip("/")
    shop_token = os.getenv("SHOPIFY_ACCESS_TOKEN", "").strip()
    api_version = os.getenv("SHOPIFY_API_VERSION", "2024-01").strip() or "2024-01"

    missing = []
    if not base_url:
        missing.append("MAGENTO_BASE_URL")
    if not token:
        missing.append("MAGENTO_ACCESS_TOKEN")
    if not store:
        missing.append("SHOPIFY_STORE")
    if not shop_token:
        missing.append("SHOPIFY_ACCESS_TOKEN")
    if missing:
        fail(f"Missing required config: {', '.join(missing)}")

    target = MagentoClient(MagentoConfig(base_url=base_url, token=token), attribute_set_id=args.attribute_set_id)
    source = ShopifySource(ShopifyConfig(store=store, token=shop_token, api_version=api_version))
    stores = ShopifyStoreClient(
        parse_stores(json.loads(os.getenv("ADDITIONAL_SHOPIFY_STORES", "") or "[]")),
        json.loads(os.getenv("ADDITIONAL_SHOPIFY_TOKENS", "") or "{}"),
        api_version=api_version,
    )
    return source, target, stores


def print_mappings(sess: ImportSession) -> None:
    state = sess.state
    flags = classify_set(state.product_mappings, sess.catalog)
    print("Product:")
    for k, m in state.product_mappings.items():
        print(f"  [{flags[k].value:7}] {k}: {describe_mapping(m)}")
    for v in state.visible_variants:
        mset = state.variant_mappings[v.sku]
        vflags = classify_set(mset, sess.catalog)
        print(f"Variant {v.sku} ({v.title}):")
        for k, m in mset.items():
            if k in state.product_mappings:
                continue
            print(f"  [{vflags[k].value:7}] {k}: {describe_mapping(m)}")
    if state.excluded:
        print(f"Already imported: {', '.join(sorted(state.excluded))}")


def main(argv: Optional[List[str]] = None) -> int:
    project_env = Path(__file__).resolve().parent.parent / ".env"
    load_env_file(project_env)
    load_env_file(Path.cwd() / ".env")
    args = parse_args(argv)
    load_env_file(Path(args.env_file) if args.env_file else None)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")

    overrides = parse_overrides(args.set)
    source, target, stores = build_clients(args)

    product = source.fetch_source_product(args.search)
    if product is None:
        raise ValueError(f"No Shopify product matches {args.search!r}")
    log.info("Found %s with %d variant(s)", product.title, len(product.variants))

    sess = ImportSession(
        product,
        AttributeCatalog(target.fetch_attribute_catalog()),
        target.fetch_category_forest(),
        target,
        stores=stores,
        payload_options=PayloadOptions(attribute_set_id=args.attribute_set_id),
        variant_delay=args.delay,
        fetch_image=None if args.no_images else fetch_image_as_base64,
    )
    if args.new:
        sess.advance_target(args.new_sku, is_new=True)
    else:
        sess.advance_target(args.sku)
    if sess.state.all_imported:
        print(f"All variants of {product.title} are already imported into {sess.state.target_sku}")
        sess.cancel()
        return 0

    for field, value in overrides:
        sess.apply_product_edit(SetProductValue(field, value))

    if args.dry_run:
        print_mappings(sess)
        configurable, variants = sess.build_payloads()
        print(json.dumps({"configurable": configurable, "variants": [p for _v, p in variants]}, indent=2))
        return 0

    outcome = sess.submit(progress=lambda i, n, v: print(f"[{i}/{n}] {v.sku}"))
    if not outcome.ok:
        fail(outcome.message)
    print(outcome.message)

    if args.publish:
        published = sess.publish(args.publish)
        for r in published.results:
            status = f"ok product_id={r.product_id}" if r.success else f"error {r.error}"
            print(f"  store {r.store_name}: {status}")
        summary = published.summary
        print(f"Published to {summary['successful']}/{summary['total']} store(s)")
        if summary["failed"]:
            return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
