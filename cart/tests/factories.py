import factory
from cart.models import Cart, CartItem
from django.contrib.auth import get_user_model
from factory.django import DjangoModelFactory


class UserFactory(DjangoModelFactory):
    class Meta:
        model = get_user_model()

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.Faker("email")
    password = factory.PostGenerationMethodCall("set_password", "pass")


class StaffUserFactory(UserFactory):
    is_staff = True


class CartFactory(DjangoModelFactory):
    class Meta:
        model = Cart

    user = factory.SubFactory(UserFactory)
    status = Cart.STATUS_ACTIVE


class CartItemFactory(DjangoModelFactory):
    class Meta:
        model = CartItem

    cart = factory.SubFactory(CartFactory)
    product = factory.SubFactory("catalog.tests.factories.ProductFactory")
    quantity = 1
    unit_price = factory.LazyAttribute(lambda o: o.product.price)
