# catalog_pricing/services/codes.py
import re
import unicodedata
from typing import Optional

from sqlalchemy.orm import Session

from catalog_pricing.core import errors
from catalog_pricing.core.errors import BusinessRuleError
from catalog_pricing.models.price_list import PriceList

MAX_CODE_LENGTH = 20
FALLBACK_CODE = "PRICELIST"

_NOT_ALLOWED = re.compile(r"[^A-Z0-9_-]")


def slugify_code(name: str) -> str:
    """'Listino Vendite Città' -> 'LISTINO-VENDITE-CITT'"""
    decomposed = unicodedata.normalize("NFD", name or "")
    ascii_only = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    code = _NOT_ALLOWED.sub("", ascii_only.strip().upper().replace(" ", "-"))
    code = code[:MAX_CODE_LENGTH]
    return code or FALLBACK_CODE


def _code_taken(db: Session, tenant_id: str, code: str) -> bool:
    return (
        db.query(PriceList.id)
        .filter(
            PriceList.tenant_id == tenant_id,
            PriceList.code == code,
            PriceList.is_deleted.is_(False),
        )
        .first()
        is not None
    )


def generate_unique_code(db: Session, tenant_id: str, name: str) -> str:
    base = slugify_code(name)
    code = base
    suffix = 1
    while _code_taken(db, tenant_id, code):
        code = f"{base}-{suffix}"
        suffix += 1
    return code


def resolve_code(db: Session, tenant_id: str, name: str, code: Optional[str] = None) -> str:
    """Explicit codes must be free in the tenant; otherwise one is derived from the name."""
    if not code:
        return generate_unique_code(db, tenant_id, name)
    if _code_taken(db, tenant_id, code):
        raise BusinessRuleError(
            errors.DUPLICATE_PRICE_LIST_CODE,
            f"Price list code {code} is already in use",
            {"code": code},
        )
    return code
