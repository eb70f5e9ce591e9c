# catalog_pricing/services/business_party.py
from __future__ import annotations

from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from catalog_pricing.audit.logger import AuditLogger, AuditWrite, snapshot
from catalog_pricing.core import errors
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.models.catalog import BusinessParty
from catalog_pricing.models.enums import AssignmentStatus
from catalog_pricing.models.price_list import PriceList, PriceListBusinessParty
from catalog_pricing.schemas.assignment import AssignBusinessPartyRequest, PriceListAssignmentView
from catalog_pricing.services.validation import validate_date_range, validate_discount

logger = structlog.get_logger(__name__)

ASSIGNMENT_FIELDS = (
    "price_list_id",
    "business_party_id",
    "is_primary",
    "override_priority",
    "specific_valid_from",
    "specific_valid_to",
    "global_discount_percentage",
    "status",
    "is_deleted",
)


class PriceListBusinessPartyService:
    """Assigns price lists to customers/suppliers. Removal is a soft delete."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditLogger(db)

    def assign(
        self, price_list_id: str, request: AssignBusinessPartyRequest, current_user: str
    ) -> PriceListAssignmentView:
        tenant_id = require_tenant()
        validate_discount(request.global_discount_percentage)
        validate_date_range(request.specific_valid_from, request.specific_valid_to)

        price_list = (
            self.db.query(PriceList)
            .filter(PriceList.id == price_list_id, PriceList.tenant_id == tenant_id, PriceList.is_deleted.is_(False))
            .first()
        )
        if price_list is None:
            raise BusinessRuleError(errors.PRICE_LIST_NOT_FOUND, f"Price list {price_list_id} not found")

        party = (
            self.db.query(BusinessParty)
            .filter(
                BusinessParty.id == request.business_party_id,
                BusinessParty.tenant_id == tenant_id,
                BusinessParty.is_deleted.is_(False),
            )
            .first()
        )
        if party is None:
            raise BusinessRuleError(
                errors.BUSINESS_PARTY_NOT_FOUND, f"Business party {request.business_party_id} not found"
            )

        if self._find(tenant_id, price_list_id, party.id) is not None:
            raise BusinessRuleError(
                errors.ALREADY_ASSIGNED,
                f"Business party {party.name} is already assigned to price list {price_list.name}",
                {"price_list_id": price_list_id, "business_party_id": party.id},
            )

        assignment = PriceListBusinessParty(
            tenant_id=tenant_id,
            price_list_id=price_list_id,
            business_party_id=party.id,
            is_primary=request.is_primary,
            override_priority=request.override_priority,
            specific_valid_from=request.specific_valid_from,
            specific_valid_to=request.specific_valid_to,
            global_discount_percentage=request.global_discount_percentage,
            status=AssignmentStatus.ACTIVE,
            notes=request.notes,
            created_by=current_user,
        )
        self.db.add(assignment)
        self.db.flush()

        self.audit.log(
            AuditWrite(
                action_type="PRICE_LIST_PARTY_ASSIGNED",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="PriceListBusinessParty",
                target_id=assignment.id,
                new_value=snapshot(assignment, ASSIGNMENT_FIELDS),
            )
        )
        self.db.commit()

        logger.info("business_party_assigned", price_list_id=price_list_id, business_party_id=party.id)
        return PriceListAssignmentView.model_validate(assignment)

    def remove(self, price_list_id: str, business_party_id: str, current_user: str) -> bool:
        tenant_id = require_tenant()
        assignment = self._find(tenant_id, price_list_id, business_party_id)
        if assignment is None:
            return False

        before = snapshot(assignment, ASSIGNMENT_FIELDS)
        assignment.soft_delete(current_user)
        assignment.status = AssignmentStatus.DELETED
        assignment.modified_by = current_user

        self.audit.log(
            AuditWrite(
                action_type="PRICE_LIST_PARTY_REMOVED",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="PriceListBusinessParty",
                target_id=assignment.id,
                old_value=before,
                new_value=snapshot(assignment, ASSIGNMENT_FIELDS),
            )
        )
        self.db.commit()

        logger.info("business_party_removed", price_list_id=price_list_id, business_party_id=business_party_id)
        return True

    def list_for_price_list(self, price_list_id: str) -> List[PriceListAssignmentView]:
        tenant_id = require_tenant()
        rows = (
            self._live(tenant_id)
            .filter(PriceListBusinessParty.price_list_id == price_list_id)
            .order_by(PriceListBusinessParty.is_primary.desc(), PriceListBusinessParty.created_at)
            .all()
        )
        return [PriceListAssignmentView.model_validate(r) for r in rows]

    def list_for_business_party(self, business_party_id: str) -> List[PriceListAssignmentView]:
        tenant_id = require_tenant()
        rows = (
            self._live(tenant_id)
            .filter(PriceListBusinessParty.business_party_id == business_party_id)
            .order_by(PriceListBusinessParty.is_primary.desc(), PriceListBusinessParty.created_at)
            .all()
        )
        return [PriceListAssignmentView.model_validate(r) for r in rows]

    def _live(self, tenant_id: str):
        return self.db.query(PriceListBusinessParty).filter(
            PriceListBusinessParty.tenant_id == tenant_id,
            PriceListBusinessParty.is_deleted.is_(False),
        )

    def _find(self, tenant_id: str, price_list_id: str, business_party_id: str) -> Optional[PriceListBusinessParty]:
        return (
            self._live(tenant_id)
            .filter(
                PriceListBusinessParty.price_list_id == price_list_id,
                PriceListBusinessParty.business_party_id == business_party_id,
            )
            .first()
        )
