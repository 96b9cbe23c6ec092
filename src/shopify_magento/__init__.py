"""
Shopify → Magento catalog migration library.

This package provides modular building blocks for:
- Proposing Magento attributes, option values and categories for Shopify fields
- Keeping product-level and per-variant mappings consistent while they are edited
- Building Magento configurable/simple product payloads
- Submitting to Magento and publishing to additional Shopify stores

Public API:
- similarity.similarity
- mapping.match_attribute, mapping.match_option_value, mapping.DIRECT_MAPPINGS
- categories.match_categories, categories.build_category_forest
- state.init_session, state.reduce
- validation.classify
- session.ImportSession
- importer.submit_import, importer.publish_to_stores
"""

from . import categories, importer, mapping, models, normalize, session, similarity, state, transform, validation  # re-export modules

__all__ = [
    "categories",
    "importer",
    "mapping",
    "models",
    "normalize",
    "session",
    "similarity",
    "state",
    "transform",
    "validation",
]
