from decimal import Decimal

import factory
from catalog.models import Category, Product
from factory import Faker
from factory.django import DjangoModelFactory


class CategoryFactory(DjangoModelFactory):
    class Meta:
        model = Category

    name = factory.Sequence(lambda n: f"Category {n}")
    slug = factory.Sequence(lambda n: f"category-{n}")
    description = Faker("sentence")
    is_active = True
    sort_order = 0
    normal_margin_percentage = None
    min_margin_percentage = None


class ProductFactory(DjangoModelFactory):
    class Meta:
        model = Product

    sku = factory.Sequence(lambda n: f"SKU-{n:05d}")
    title = Faker("sentence", nb_words=3)
    category = factory.SubFactory(CategoryFactory)
    min_stock = 0
    price = Decimal("150.00")
    is_active = True
