#!/usr/bin/env python3
"""Self-test for the attribute and category matchers.

No network required. Prints the proposals for a small Magento-like schema.
"""
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / 'src'))

from shopify_magento.categories import build_category_forest, match_categories  # type: ignore
from shopify_magento.mapping import match_attribute  # type: ignore
from shopify_magento.models import AttributeCatalog, AttributeOption, TargetAttributeDef  # type: ignore


def main() -> int:
    catalog = AttributeCatalog([
        TargetAttributeDef('manufacturer', 'Manufacturer', 'select', options=[AttributeOption('Acme', '10')]),
        TargetAttributeDef('flavor', 'Flavor', 'select', options=[AttributeOption('Strawberry', '40')]),
        TargetAttributeDef('color', 'Color', 'select', options=[AttributeOption('Red', '30')]),
    ])
    assert match_attribute('vendor', 'Acme', catalog) == ('manufacturer', '10')
    assert match_attribute('Flavor', 'strawbery', catalog) == ('flavor', '40')
    assert match_attribute('Colour', 'Red', catalog) == ('color', '30')
    assert match_attribute('Xyz', '', catalog) == ('', '')

    forest = build_category_forest([
        {'id': 2, 'name': 'Default Category', 'level': 1, 'path': '1/2', 'is_active': True},
        {'id': 3, 'name': 'Vaping', 'level': 2, 'path': '1/2/3', 'is_active': True},
        {'id': 4, 'name': 'Kits', 'level': 3, 'path': '1/2/3/4', 'is_active': True},
        {'id': 5, 'name': 'Accessories', 'level': 2, 'path': '1/2/5', 'is_active': True},
    ])
    assert match_categories('Vape Kits', forest) == ['4']
    print('Self-test ok: match_attribute and match_categories pass basic checks')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
