"""
Deposit (setor) request shapes.

Two payload shapes reach the deposit endpoint:

    {"adminId": 2, "items": [{"detailSetorId": 10, "qty": 3}, ...]}
    {"adminId": 2, "detailSetorIds": [10, 11]}        # legacy
    [10, 11]                                          # legacy, bare list

`parse_setor_payload` turns any of them into one `SetorCommand`. A legacy id
carries `qty=None`, meaning "the full remaining qty of that line item".
"""
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel

from errors import ValidationError


class SetorItem(BaseModel):
    detail_setor_id: int
    qty: Optional[int] = None


class SetorCommand(BaseModel):
    items: List[SetorItem]
    admin_id: Optional[int] = None

    @property
    def detail_setor_ids(self) -> List[int]:
        return [item.detail_setor_id for item in self.items]


class SetorReceiptLine(BaseModel):
    detail_setor_id: int
    barang_nama: str
    qty: int
    total_harga: Decimal


class SetorResult(BaseModel):
    message: str
    total_pemasukan: Decimal
    saldo_terbaru: Decimal
    details: List[SetorReceiptLine]


def _first_key(data: dict, *keys):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {value!r}")
    return value


def _parse_structured_item(raw: Any) -> SetorItem:
    if not isinstance(raw, dict):
        raise ValidationError(f"Invalid setor item: {raw!r}")
    detail_id = _first_key(raw, "detailSetorId", "detail_setor_id")
    if detail_id is None:
        raise ValidationError("Every setor item needs a detailSetorId")
    qty = _first_key(raw, "qty")
    return SetorItem(
        detail_setor_id=_as_int(detail_id, "detailSetorId"),
        qty=_as_int(qty, "qty") if qty is not None else None,
    )


def _parse_list(raw: list) -> List[SetorItem]:
    has_ids = any(not isinstance(entry, dict) for entry in raw)
    has_items = any(isinstance(entry, dict) for entry in raw)
    if has_ids and has_items:
        raise ValidationError("Cannot mix bare detail setor ids with {detailSetorId, qty} items")
    if has_items:
        return [_parse_structured_item(entry) for entry in raw]
    return [SetorItem(detail_setor_id=_as_int(entry, "detailSetorId")) for entry in raw]


def parse_setor_payload(payload: Any, admin_id: Optional[int] = None) -> SetorCommand:
    """Normalize a raw deposit payload into a `SetorCommand`."""
    if isinstance(payload, list):
        items = _parse_list(payload)
    elif isinstance(payload, dict):
        admin_id = _first_key(payload, "adminId", "admin_id") or admin_id
        structured = _first_key(payload, "items")
        legacy = _first_key(payload, "detailSetorIds", "detail_setor_ids")
        if structured is not None and not isinstance(structured, list):
            raise ValidationError("items must be a list")
        if legacy is not None and not isinstance(legacy, list):
            raise ValidationError("detailSetorIds must be a list")
        if structured and legacy:
            raise ValidationError("Use either items or detailSetorIds, not both")

        if structured:
            if any(not isinstance(entry, dict) for entry in structured):
                raise ValidationError("Cannot mix bare detail setor ids with {detailSetorId, qty} items")
            items = [_parse_structured_item(entry) for entry in structured]
        elif legacy:
            if any(isinstance(entry, dict) for entry in legacy):
                raise ValidationError("Cannot mix bare detail setor ids with {detailSetorId, qty} items")
            items = [SetorItem(detail_setor_id=_as_int(entry, "detailSetorId")) for entry in legacy]
        else:
            items = []
    else:
        raise ValidationError("Invalid setor payload")

    if not items:
        raise ValidationError("Setor items cannot be empty")

    if admin_id is not None:
        admin_id = _as_int(admin_id, "adminId")

    return SetorCommand(items=items, admin_id=admin_id)
