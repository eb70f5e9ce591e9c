from datetime import datetime
from decimal import Decimal

import pytest

from catalog_pricing.audit.logger import AuditLogger, AuditWrite, snapshot
from catalog_pricing.models import AuditEvent, PriceListStatus


def test_log_adds_event_to_callers_session(db, tenant):
    audit_id = AuditLogger(db).log(
        AuditWrite(
            action_type="PRICE_LIST_DEFAULT_SET",
            actor="ivan",
            tenant_id=tenant,
            target_type="PriceList",
            target_id="pl-1",
            new_value={"price": Decimal("9.99"), "at": datetime(2025, 1, 1)},
        )
    )
    # nothing is written until the caller commits
    assert db.query(AuditEvent).count() == 0
    db.commit()

    event = db.query(AuditEvent).one()
    assert audit_id.startswith("price_list_default_set:")
    assert event.audit_id == audit_id
    assert event.new_value == {"price": "9.99", "at": "2025-01-01T00:00:00"}


def test_rollback_discards_the_event(db, tenant):
    AuditLogger(db).log(
        AuditWrite(action_type="X", actor="ivan", tenant_id=tenant, target_type="PriceList", target_id="pl-1")
    )
    db.rollback()
    assert db.query(AuditEvent).count() == 0


@pytest.mark.parametrize(
    "missing",
    [
        dict(actor=""),
        dict(tenant_id=""),
        dict(target_id=""),
        dict(action_type="  "),
    ],
)
def test_required_fields_fail_closed(db, missing):
    fields = dict(action_type="X", actor="ivan", tenant_id="tenant-a", target_type="PriceList", target_id="pl-1")
    fields.update(missing)
    with pytest.raises(ValueError):
        AuditLogger(db).log(AuditWrite(**fields))


def test_snapshot_is_json_safe(make):
    price_list = make.price_list("Retail")
    assert snapshot(price_list, ("name", "status", "priority")) == {
        "name": "Retail",
        "status": PriceListStatus.ACTIVE.value,
        "priority": 0,
    }
