from datetime import timedelta
from io import StringIO

import pytest
from cart.models import Cart
from cart.tests.factories import CartFactory, CartItemFactory
from django.core.management import call_command
from django.utils import timezone


@pytest.mark.django_db
def test_abandon_stale_carts_only_touches_old_active_carts():
    stale = CartItemFactory().cart
    fresh = CartFactory()
    ordered = CartFactory(status=Cart.STATUS_ORDERED)
    old = timezone.now() - timedelta(hours=5)
    Cart.objects.filter(id__in=[stale.id, ordered.id]).update(updated_at=old)

    out = StringIO()
    call_command("abandon_stale_carts", "--minutes", "60", stdout=out)

    assert "Abandoned 1 stale carts." in out.getvalue()
    statuses = dict(Cart.objects.values_list("id", "status"))
    assert statuses[stale.id] == Cart.STATUS_ABANDONED
    assert statuses[fresh.id] == Cart.STATUS_ACTIVE
    assert statuses[ordered.id] == Cart.STATUS_ORDERED
    assert not stale.items.exists()
