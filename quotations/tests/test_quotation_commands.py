from datetime import timedelta
from io import StringIO

import pytest
from cart.tests.factories import UserFactory
from django.core.management import call_command
from django.utils import timezone
from inventory.tests.factories import WarehouseFactory
from quotations.models import Quotation
from quotations.services import create_quotation


@pytest.mark.django_db
def test_expire_quotations_command():
    user = UserFactory()
    warehouse = WarehouseFactory()
    overdue = create_quotation(created_by=user, customer_name="Old", warehouse=warehouse)
    current = create_quotation(created_by=user, customer_name="New", warehouse=warehouse)
    Quotation.objects.filter(id=overdue.id).update(valid_until=timezone.localdate() - timedelta(days=2))

    out = StringIO()
    call_command("expire_quotations", stdout=out)

    assert "Expired 1 quotations." in out.getvalue()
    overdue.refresh_from_db()
    current.refresh_from_db()
    assert overdue.status == Quotation.STATUS_EXPIRED
    assert current.status == Quotation.STATUS_DRAFT
    assert overdue.history.last().note == "Validity period elapsed"
