from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from catalog_pricing.core import errors
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.models import AssignmentStatus, AuditEvent, PriceListBusinessParty
from catalog_pricing.schemas.assignment import AssignBusinessPartyRequest
from catalog_pricing.services.business_party import PriceListBusinessPartyService

D = Decimal


@pytest.fixture
def svc(db):
    return PriceListBusinessPartyService(db)


def test_assign_and_list(svc, db, make):
    price_list = make.price_list("Contract")
    party = make.party("Customer")

    view = svc.assign(
        price_list.id,
        AssignBusinessPartyRequest(business_party_id=party.id, is_primary=True, global_discount_percentage=D("7.5")),
        "gina",
    )

    assert view.status == AssignmentStatus.ACTIVE
    assert view.global_discount_percentage == D("7.5")
    assert [v.id for v in svc.list_for_price_list(price_list.id)] == [view.id]
    assert [v.price_list_id for v in svc.list_for_business_party(party.id)] == [price_list.id]
    assert db.query(AuditEvent).filter_by(action_type="PRICE_LIST_PARTY_ASSIGNED").count() == 1


def test_double_assignment_rejected(svc, make):
    price_list = make.price_list("Contract")
    party = make.party("Customer")
    request = AssignBusinessPartyRequest(business_party_id=party.id)
    svc.assign(price_list.id, request, "gina")

    with pytest.raises(BusinessRuleError) as exc:
        svc.assign(price_list.id, request, "gina")
    assert exc.value.code == errors.ALREADY_ASSIGNED


def test_remove_is_soft_and_allows_reassignment(svc, db, make):
    price_list = make.price_list("Contract")
    party = make.party("Customer")
    request = AssignBusinessPartyRequest(business_party_id=party.id)
    first = svc.assign(price_list.id, request, "gina")

    assert svc.remove(price_list.id, party.id, "gina") is True
    assert svc.remove(price_list.id, party.id, "gina") is False
    assert svc.list_for_price_list(price_list.id) == []

    removed = db.get(PriceListBusinessParty, first.id)
    assert (removed.is_deleted, removed.status, removed.deleted_by) == (True, AssignmentStatus.DELETED, "gina")

    second = svc.assign(price_list.id, request, "gina")
    assert second.id != first.id


def test_assignment_validation(svc, make):
    price_list = make.price_list("Contract")
    party = make.party("Customer")

    with pytest.raises(ValidationError):
        AssignBusinessPartyRequest(business_party_id=party.id, global_discount_percentage=D("120"))

    with pytest.raises(BusinessRuleError) as exc:
        svc.assign(
            price_list.id,
            AssignBusinessPartyRequest(
                business_party_id=party.id,
                specific_valid_from=datetime(2025, 2, 1),
                specific_valid_to=datetime(2025, 1, 1),
            ),
            "gina",
        )
    assert exc.value.code == errors.INVALID_DATE_RANGE

    with pytest.raises(BusinessRuleError) as exc:
        svc.assign("nope", AssignBusinessPartyRequest(business_party_id=party.id), "gina")
    assert exc.value.code == errors.PRICE_LIST_NOT_FOUND

    with pytest.raises(BusinessRuleError) as exc:
        svc.assign(price_list.id, AssignBusinessPartyRequest(business_party_id="nope"), "gina")
    assert exc.value.code == errors.BUSINESS_PARTY_NOT_FOUND
