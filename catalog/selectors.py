"""Selectors for the catalog domain.

Read-only query helpers returning model instances or plain lists. Category
ancestry is resolved with explicit queries rather than lazy relation access
so callers see exactly what is loaded.
"""

from typing import List, Optional

from django.db.models import QuerySet

from .models import MAX_CATEGORY_LEVEL, Category, Product


def get_product(product_id: int) -> Product:
    return Product.objects.select_related("category").get(id=product_id)


def list_active_products(*, category_id: Optional[int] = None) -> QuerySet[Product]:
    qs = Product.objects.filter(is_active=True).select_related("category")
    if category_id:
        qs = qs.filter(category_id=category_id)
    return qs


def category_chain(category: Optional[Category]) -> List[Category]:
    """Return ``[category, parent, grandparent, ...]`` starting at ``category``.

    Bounded by the maximum tree depth so a corrupted parent loop cannot spin.
    """

    chain: List[Category] = []
    current = category
    while current is not None and len(chain) < MAX_CATEGORY_LEVEL:
        chain.append(current)
        if current.parent_id is None:
            break
        current = Category.objects.filter(id=current.parent_id).first()
    return chain


def category_path(category: Optional[Category]) -> str:
    """Breadcrumb such as ``Hardware > Storage > SSD``."""

    return " > ".join(c.name for c in reversed(category_chain(category)))
