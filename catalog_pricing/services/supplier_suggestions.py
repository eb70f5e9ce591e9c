# catalog_pricing/services/supplier_suggestions.py
from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import update
from sqlalchemy.orm import Session

from catalog_pricing.audit.logger import AuditLogger, AuditWrite
from catalog_pricing.calculators import scoring
from catalog_pricing.core import errors
from catalog_pricing.core.clock import utcnow
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.core.settings import SupplierSuggestionSettings, get_settings
from catalog_pricing.core.tenant_context import require_tenant
from catalog_pricing.metrics import SUPPLIER_ALERTS
from catalog_pricing.models.catalog import BusinessParty, Product, ProductSupplier
from catalog_pricing.schemas.suggestions import (
    ReliabilityMetrics,
    ScoreBreakdown,
    SupplierReliabilityResponse,
    SupplierSuggestion,
    SupplierSuggestionResponse,
)
from catalog_pricing.services.alerts import AlertSink
from catalog_pricing.services.price_history import SupplierProductPriceHistoryService
from catalog_pricing.services.suggestion_cache import SuggestionCache, get_suggestion_cache

logger = structlog.get_logger(__name__)

D = Decimal

STRONG = D("80")
FAIR = D("60")


class SupplierSuggestionService:
    """
    Ranks every supplier offering a product on price, lead time, reliability
    and price trend, and recommends the best one.

    Results are cached per (product, tenant) for `cache_scores_duration_minutes`.
    apply_suggested_supplier drops the cache entry before it returns.
    """

    def __init__(
        self,
        db: Session,
        config: Optional[SupplierSuggestionSettings] = None,
        cache: Optional[SuggestionCache] = None,
        alert_sink: Optional[AlertSink] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.config = config or get_settings().SUPPLIER_SUGGESTION
        self.cache = cache or get_suggestion_cache()
        self.alert_sink = alert_sink
        self.clock = clock
        self.history = SupplierProductPriceHistoryService(db)
        self.audit = AuditLogger(db)

    # ---------------------------
    # public API
    # ---------------------------

    def calculate_suggestions(self, product_id: str) -> List[SupplierSuggestion]:
        tenant_id = require_tenant()

        cached = self.cache.get(product_id, tenant_id)
        if cached is not None:
            return list(cached)

        offers = self._offers(tenant_id, product_id)
        if len(offers) < 2:
            logger.info("supplier_suggestions_insufficient_suppliers", product_id=product_id, count=len(offers))
            return []

        now = self.clock()
        costs = [o.unit_cost for o in offers]
        lead_times = [D(o.lead_time_days) if o.lead_time_days is not None else None for o in offers]

        suggestions: List[SupplierSuggestion] = []
        for offer, lead_time in zip(offers, lead_times):
            supplier = offer.supplier
            breakdown = ScoreBreakdown(
                price_score=scoring.normalized_inverse_score(offer.unit_cost, costs),
                lead_time_score=scoring.normalized_inverse_score(lead_time, lead_times),
                reliability_score=scoring.reliability_score(self._reliability_metrics(supplier, now)),
                trend_score=self._trend_score(supplier.id, product_id, now),
            )
            total = scoring.total_score(breakdown, self.config)
            suggestions.append(
                SupplierSuggestion(
                    supplier_id=supplier.id,
                    supplier_name=supplier.name,
                    product_supplier_id=offer.id,
                    unit_cost=offer.unit_cost,
                    currency=offer.currency,
                    lead_time_days=offer.lead_time_days,
                    is_preferred=offer.preferred,
                    total_score=total,
                    score_breakdown=breakdown,
                    confidence_level=scoring.confidence_level(total, self.config),
                    recommendation_reasons=_recommendation_reasons(breakdown),
                    explanations=_score_explanations(offer, breakdown, offers),
                )
            )

        suggestions.sort(
            key=lambda s: (
                -s.total_score,
                s.unit_cost if s.unit_cost is not None else D("Infinity"),
                s.supplier_name,
            )
        )

        self.cache.set(product_id, tenant_id, suggestions, self.config.cache_scores_duration_minutes * 60)
        logger.info(
            "supplier_suggestions_calculated",
            product_id=product_id,
            supplier_count=len(suggestions),
            top_supplier_id=suggestions[0].supplier_id,
        )
        return list(suggestions)

    def get_supplier_suggestions(self, product_id: str) -> SupplierSuggestionResponse:
        tenant_id = require_tenant()
        product = (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.tenant_id == tenant_id, Product.is_deleted.is_(False))
            .first()
        )
        if product is None:
            raise BusinessRuleError(errors.PRODUCT_NOT_FOUND, f"Product {product_id} not found")

        suggestions = self.calculate_suggestions(product_id)
        if not suggestions:
            return SupplierSuggestionResponse(
                product_id=product.id,
                product_name=product.name,
                recommendation_explanation="No suppliers available for comparison.",
                calculated_at=self.clock(),
            )

        recommended = suggestions[0]
        current = next((s for s in suggestions if s.is_preferred), None)

        savings = None
        if current is not None and current.unit_cost is not None and recommended.unit_cost is not None:
            savings = current.unit_cost - recommended.unit_cost

        if (
            self.alert_sink is not None
            and current is not None
            and recommended.supplier_id != current.supplier_id
            and recommended.total_score > current.total_score + self.config.alert_score_difference_threshold
        ):
            self._raise_alert(tenant_id, product.id, current, recommended, savings)

        return SupplierSuggestionResponse(
            product_id=product.id,
            product_name=product.name,
            current_preferred_supplier=current,
            recommended_supplier=recommended,
            all_suppliers=suggestions,
            potential_savings=savings,
            recommendation_explanation=_recommendation_explanation(recommended, product.name),
            calculated_at=self.clock(),
        )

    def apply_suggested_supplier(
        self,
        product_id: str,
        supplier_id: str,
        reason: Optional[str] = None,
        current_user: str = "system",
    ) -> bool:
        tenant_id = require_tenant()

        target = (
            self.db.query(ProductSupplier)
            .filter(
                ProductSupplier.tenant_id == tenant_id,
                ProductSupplier.product_id == product_id,
                ProductSupplier.supplier_id == supplier_id,
                ProductSupplier.is_deleted.is_(False),
            )
            .first()
        )
        if target is None:
            logger.warning("suggested_supplier_not_offered", product_id=product_id, supplier_id=supplier_id)
            return False

        previous = [
            row[0]
            for row in self.db.query(ProductSupplier.supplier_id)
            .filter(
                ProductSupplier.tenant_id == tenant_id,
                ProductSupplier.product_id == product_id,
                ProductSupplier.preferred.is_(True),
                ProductSupplier.is_deleted.is_(False),
            )
            .all()
        ]

        # one statement clears the old preferred offer and sets the new one
        self.db.execute(
            update(ProductSupplier)
            .where(
                ProductSupplier.tenant_id == tenant_id,
                ProductSupplier.product_id == product_id,
                ProductSupplier.is_deleted.is_(False),
            )
            .values(preferred=(ProductSupplier.id == target.id))
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(target)

        if reason:
            target.notes = f"Applied suggestion: {reason}. Previous notes: {target.notes or ''}".strip()
        target.modified_by = current_user

        self.audit.log(
            AuditWrite(
                action_type="PREFERRED_SUPPLIER_CHANGED",
                actor=current_user,
                tenant_id=tenant_id,
                target_type="Product",
                target_id=product_id,
                old_value={"preferred_supplier_ids": previous},
                new_value={"preferred_supplier_ids": [supplier_id]},
                meta={"reason": reason},
            )
        )
        self.db.commit()
        self.cache.invalidate(product_id, tenant_id)

        logger.info("suggested_supplier_applied", product_id=product_id, supplier_id=supplier_id)
        return True

    def get_supplier_reliability(self, supplier_id: str) -> SupplierReliabilityResponse:
        tenant_id = require_tenant()
        supplier = (
            self.db.query(BusinessParty)
            .filter(
                BusinessParty.id == supplier_id,
                BusinessParty.tenant_id == tenant_id,
                BusinessParty.is_deleted.is_(False),
            )
            .first()
        )
        if supplier is None:
            raise BusinessRuleError(errors.SUPPLIER_NOT_FOUND, f"Supplier {supplier_id} not found")

        metrics = self._reliability_metrics(supplier, self.clock())
        return SupplierReliabilityResponse(
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            reliability_score=scoring.reliability_score(metrics),
            product_count=self._product_count(tenant_id, supplier.id),
            metrics=metrics,
        )

    # ---------------------------
    # helpers
    # ---------------------------

    def _offers(self, tenant_id: str, product_id: str) -> List[ProductSupplier]:
        return (
            self.db.query(ProductSupplier)
            .join(BusinessParty, ProductSupplier.supplier_id == BusinessParty.id)
            .filter(
                ProductSupplier.tenant_id == tenant_id,
                ProductSupplier.product_id == product_id,
                ProductSupplier.is_deleted.is_(False),
                BusinessParty.is_deleted.is_(False),
            )
            .order_by(ProductSupplier.id)
            .all()
        )

    def _product_count(self, tenant_id: str, supplier_id: str) -> int:
        return (
            self.db.query(ProductSupplier)
            .filter(
                ProductSupplier.tenant_id == tenant_id,
                ProductSupplier.supplier_id == supplier_id,
                ProductSupplier.is_deleted.is_(False),
            )
            .count()
        )

    def _reliability_metrics(self, supplier: BusinessParty, now: datetime) -> ReliabilityMetrics:
        return scoring.estimate_reliability_metrics(
            supplier_created_at=supplier.created_at,
            product_count=self._product_count(supplier.tenant_id, supplier.id),
            price_history_count=self.history.count_for_supplier(supplier.id),
            now=now,
        )

    def _trend_score(self, supplier_id: str, product_id: str, now: datetime) -> D:
        window_start = now - timedelta(days=self.config.trend_analysis_period_days)
        points = self.history.get_price_trend_data(supplier_id, product_id, window_start, now)
        return scoring.trend_score([p.price for p in points], self.config.min_data_points_for_trend)

    def _raise_alert(self, tenant_id, product_id, current, recommended, savings) -> None:
        # alerts are advisory: a failing sink never fails the suggestion call
        try:
            self.alert_sink.better_supplier_found(product_id, current, recommended, savings)
            SUPPLIER_ALERTS.labels(outcome="raised", tenant_id=tenant_id).inc()
        except Exception:
            SUPPLIER_ALERTS.labels(outcome="failed", tenant_id=tenant_id).inc()
            logger.warning("supplier_alert_failed", product_id=product_id, exc_info=True)


# ---------------------------
# explanations
# ---------------------------


def _recommendation_reasons(breakdown: ScoreBreakdown) -> List[str]:
    strengths = []
    if breakdown.price_score > STRONG:
        strengths.append("best price")
    if breakdown.lead_time_score > STRONG:
        strengths.append("fast delivery")
    if breakdown.reliability_score > STRONG:
        strengths.append("high reliability")
    if breakdown.trend_score > STRONG:
        strengths.append("stable pricing")
    return strengths or ["balanced overall performance"]


def _average(values: Sequence[Optional[D]]) -> Optional[D]:
    known = [v for v in values if v is not None]
    if not known:
        return None
    return sum(known, D("0")) / D(len(known))


def _score_explanations(
    offer: ProductSupplier, breakdown: ScoreBreakdown, offers: Sequence[ProductSupplier]
) -> Dict[str, str]:
    explanations: Dict[str, str] = {}

    avg_price = _average([o.unit_cost for o in offers])
    if offer.unit_cost is None or not avg_price:
        explanations["Price"] = "No price data available"
    else:
        diff_pct = (offer.unit_cost - avg_price) / avg_price * D("100")
        if abs(diff_pct) < 5:
            explanations["Price"] = "Price is competitive with market average"
        elif diff_pct < 0:
            explanations["Price"] = f"Price is {abs(diff_pct):.1f}% below average - excellent value"
        else:
            explanations["Price"] = f"Price is {diff_pct:.1f}% above average"

    avg_lead = _average([D(o.lead_time_days) for o in offers if o.lead_time_days is not None])
    if offer.lead_time_days is None or avg_lead is None:
        explanations["LeadTime"] = "No lead time data available"
    else:
        diff = D(offer.lead_time_days) - avg_lead
        if abs(diff) <= 1:
            explanations["LeadTime"] = "Lead time is average for this product"
        elif diff < 0:
            explanations["LeadTime"] = f"Delivers {abs(diff):.0f} days faster than average"
        else:
            explanations["LeadTime"] = f"Lead time is {diff:.0f} days longer than average"

    if breakdown.reliability_score > STRONG:
        explanations["Reliability"] = "Highly reliable supplier with good track record"
    elif breakdown.reliability_score > FAIR:
        explanations["Reliability"] = "Reliable supplier with adequate performance"
    else:
        explanations["Reliability"] = "Limited reliability data available"

    if breakdown.trend_score > STRONG:
        explanations["Trend"] = "Pricing is stable or decreasing over time"
    elif breakdown.trend_score > FAIR:
        explanations["Trend"] = "Pricing shows moderate stability"
    else:
        explanations["Trend"] = "Prices have been increasing recently"

    return explanations


def _recommendation_explanation(suggestion: SupplierSuggestion, product_name: str) -> str:
    b = suggestion.score_breakdown
    price = f"{suggestion.currency or ''} {suggestion.unit_cost:.2f}".strip() if suggestion.unit_cost is not None else ""
    reasons = []

    if b.price_score > STRONG:
        reasons.append(f"they offer the best price ({price})")
    elif b.price_score > FAIR:
        reasons.append(f"they offer competitive pricing ({price})")

    if suggestion.lead_time_days is not None:
        if b.lead_time_score > STRONG:
            reasons.append(f"excellent delivery time ({suggestion.lead_time_days} days)")
        elif b.lead_time_score > FAIR:
            reasons.append(f"good delivery time ({suggestion.lead_time_days} days)")

    if b.reliability_score > STRONG:
        reasons.append("high reliability")
    elif b.reliability_score > FAIR:
        reasons.append("good reliability")

    if b.trend_score > STRONG:
        reasons.append("stable or decreasing pricing trend")
    elif b.trend_score < D("40"):
        reasons.append("but note: prices have been increasing")

    explanation = f"We recommend {suggestion.supplier_name} for {product_name}"
    if reasons:
        return f"{explanation} because {', '.join(reasons)}."
    return f"{explanation} based on overall balanced performance."
