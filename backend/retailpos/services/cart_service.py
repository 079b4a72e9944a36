# Overview: Register cart aggregate and its pure totals calculation (subtotal, discount, tax, change).

"""
Cart calculator.

The cart is an explicit, serializable aggregate. Every mutator changes items
or configuration and then recomputes all derived amounts from scratch with
`calculate_totals`, so repeated edits never accumulate drift.

Rounding policy: every monetary intermediate is rounded to 2 decimals
(half-up) at the step where it is produced, not only at the end.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from ..money import HUNDRED, ZERO, money_str, qty_str, round2, to_decimal
from ..time_utils import to_utc_z, utcnow

FIXED = "FIXED"
PERCENT = "PERCENT"
ADJUSTMENT_TYPES = (FIXED, PERCENT)

WALK_IN_NAME = "Walk-in Customer"
DEFAULT_TAX_VALUE = Decimal("5")


class CartError(ValueError):
    """Invalid cart operation (unknown line, malformed amount)."""


@dataclass
class CartItem:
    product_id: int
    name: str
    quantity: Decimal
    unit_price: Decimal
    stock: Decimal
    discount: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": qty_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "stock": qty_str(self.stock),
            "discount": money_str(self.discount),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        try:
            item = cls(
                product_id=int(data["product_id"]),
                name=str(data.get("name") or ""),
                quantity=to_decimal(data.get("quantity")),
                unit_price=to_decimal(data.get("unit_price")),
                stock=to_decimal(data.get("stock")),
                discount=to_decimal(data.get("discount")),
                tax=to_decimal(data.get("tax")),
            )
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise CartError(f"Invalid cart item: {exc}")
        item.total = calculate_item_total(item)
        return item


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    discount_percent: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "discount_percent": money_str(self.discount_percent),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
        }


@dataclass
class SavedCart:
    """Parked cart snapshot. Cash received and change are not part of it."""
    id: str
    timestamp: datetime
    note: Optional[str]
    items: list[CartItem]
    totals: CartTotals
    discount_type: str
    discount_value: Decimal
    tax_type: str
    tax_value: Decimal
    customer_id: Optional[int]
    customer_name: Optional[str]
    payment_method: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_utc_z(self.timestamp),
            "note": self.note,
            "items": [item.to_dict() for item in self.items],
            **self.totals.to_dict(),
            "discount_type": self.discount_type,
            "discount_value": money_str(self.discount_value),
            "tax_type": self.tax_type,
            "tax_value": money_str(self.tax_value),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "payment_method": self.payment_method,
        }


@dataclass
class Cart:
    items: list[CartItem] = field(default_factory=list)
    discount_type: str = FIXED
    discount_value: Decimal = ZERO
    tax_type: str = PERCENT
    tax_value: Decimal = DEFAULT_TAX_VALUE
    customer_id: Optional[int] = None
    customer_name: str = WALK_IN_NAME
    payment_method: str = "CASH"
    cash_received: Optional[Decimal] = None
    change: Optional[Decimal] = None
    totals: CartTotals = field(default_factory=CartTotals)
    saved_carts: list[SavedCart] = field(default_factory=list)

    def find(self, product_id: int) -> Optional[CartItem]:
        return next((i for i in self.items if i.product_id == product_id), None)

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "discount_type": self.discount_type,
            "discount_value": money_str(self.discount_value),
            "tax_type": self.tax_type,
            "tax_value": money_str(self.tax_value),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "payment_method": self.payment_method,
            "cash_received": money_str(self.cash_received),
            "change": money_str(self.change),
            **self.totals.to_dict(),
            "saved_carts": [saved.to_dict() for saved in self.saved_carts],
        }

    @classmethod
    def from_dict(cls, data: dict, *, default_tax: Decimal = DEFAULT_TAX_VALUE) -> "Cart":
        """Rebuild a cart posted by a client. Derived amounts are recomputed, never trusted."""
        if not isinstance(data, dict):
            raise CartError("Cart must be an object")
        items = data.get("items") or []
        if not isinstance(items, list):
            raise CartError("items must be a list")
        try:
            cart = cls(
                items=[CartItem.from_dict(i) for i in items],
                tax_value=to_decimal(data.get("tax_value"), default=default_tax),
                customer_id=data.get("customer_id"),
                customer_name=data.get("customer_name") or WALK_IN_NAME,
                payment_method=str(data.get("payment_method") or "CASH").upper(),
            )
            set_discount(cart, data.get("discount_type"), data.get("discount_value"))
            set_tax(cart, data.get("tax_type"), cart.tax_value)
        except CartError:
            raise
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise CartError(f"Invalid cart: {exc}")
        if data.get("cash_received") not in (None, ""):
            set_cash_received(cart, data["cash_received"])
        return cart


def _adjustment_type(value: Any, default: str) -> str:
    if value in (None, ""):
        return default
    value = str(value).upper()
    if value not in ADJUSTMENT_TYPES:
        raise CartError(f"Adjustment type must be one of: {', '.join(ADJUSTMENT_TYPES)}")
    return value


# Pure calculation

def calculate_item_total(item: CartItem) -> Decimal:
    line = round2(item.quantity * item.unit_price)
    return round2(line - round2(item.discount) + round2(item.tax))


def calculate_totals(
    items: list[CartItem],
    discount_type: str = FIXED,
    discount_value: Decimal = ZERO,
    tax_type: str = PERCENT,
    tax_value: Decimal = DEFAULT_TAX_VALUE,
) -> CartTotals:
    """
    Derive cart totals from items and discount/tax configuration.

    - subtotal: running sum of quantity * unit_price, rounded after each line
    - PERCENT discount is taken on the subtotal; both modes are capped at it
    - FIXED discount reports the equivalent percentage for display
    - PERCENT tax is taken on the post-discount (taxable) amount
    - total = max(0, taxable + tax)
    """
    subtotal = ZERO
    for item in items:
        subtotal = round2(subtotal + item.quantity * item.unit_price)

    discount = ZERO
    discount_percent = ZERO
    discount_value = to_decimal(discount_value)
    if discount_value > 0:
        if discount_type == PERCENT:
            discount_percent = discount_value
            discount = min(round2(subtotal * discount_percent / HUNDRED), subtotal)
        else:
            discount = min(round2(discount_value), subtotal)
            if subtotal > 0:
                discount_percent = round2(discount / subtotal * HUNDRED)

    taxable = round2(subtotal - discount)

    tax = ZERO
    tax_value = to_decimal(tax_value)
    if tax_value > 0:
        if tax_type == PERCENT:
            tax = round2(taxable * tax_value / HUNDRED)
        else:
            tax = round2(tax_value)

    total = max(ZERO, round2(taxable + tax))
    return CartTotals(
        subtotal=round2(subtotal),
        discount=discount,
        discount_percent=discount_percent,
        tax=tax,
        total=total,
    )


def calculate_change(total: Decimal, cash_received: Any) -> tuple[Decimal, Decimal]:
    received = round2(cash_received)
    change = round2(received - total)
    return received, max(change, ZERO)


def _recalculate(cart: Cart) -> Cart:
    for item in cart.items:
        item.total = calculate_item_total(item)
    cart.totals = calculate_totals(
        cart.items, cart.discount_type, cart.discount_value, cart.tax_type, cart.tax_value
    )
    if cart.cash_received is not None:
        cart.cash_received, cart.change = calculate_change(cart.totals.total, cart.cash_received)
    return cart


# Mutators. Each returns the same cart with totals recomputed.

def add_item(cart: Cart, product_id: int, name: str, unit_price: Any, stock: Any, quantity: Any = 1) -> Cart:
    """
    Add a product, or raise the quantity of an existing line.

    The cumulative quantity is clamped to available stock; a new line whose
    clamped quantity is zero or less is not added.
    """
    quantity = to_decimal(quantity)
    stock = to_decimal(stock)
    existing = cart.find(product_id)
    if existing is not None:
        existing.stock = stock
        return update_quantity(cart, product_id, min(existing.quantity + quantity, stock))

    quantity = min(quantity, stock)
    if quantity <= 0:
        return cart
    cart.items.append(CartItem(
        product_id=product_id,
        name=name,
        quantity=quantity,
        unit_price=to_decimal(unit_price),
        stock=stock,
    ))
    return _recalculate(cart)


def update_quantity(cart: Cart, product_id: int, quantity: Any) -> Cart:
    quantity = to_decimal(quantity)
    if quantity <= 0:
        return remove_item(cart, product_id)
    item = cart.find(product_id)
    if item is None:
        raise CartError(f"Product {product_id} is not in the cart")
    item.quantity = min(quantity, item.stock)
    return _recalculate(cart)


def remove_item(cart: Cart, product_id: int) -> Cart:
    cart.items = [i for i in cart.items if i.product_id != product_id]
    return _recalculate(cart)


def clear_cart(cart: Cart) -> Cart:
    """Reset everything except the parked carts."""
    saved = cart.saved_carts
    fresh = Cart(saved_carts=saved)
    cart.__dict__.update(fresh.__dict__)
    return cart


def set_customer(cart: Cart, customer_id: int, name: str) -> Cart:
    cart.customer_id = customer_id
    cart.customer_name = name
    return cart


def reset_customer(cart: Cart) -> Cart:
    cart.customer_id = None
    cart.customer_name = WALK_IN_NAME
    return cart


def set_payment_method(cart: Cart, method: str) -> Cart:
    cart.payment_method = method.upper()
    if cart.payment_method != "CASH":
        cart.cash_received = None
        cart.change = None
    return cart


def set_cash_received(cart: Cart, amount: Any) -> Cart:
    cart.cash_received, cart.change = calculate_change(cart.totals.total, amount)
    return cart


def set_discount(cart: Cart, discount_type: str, value: Any) -> Cart:
    discount_type = _adjustment_type(discount_type, FIXED)
    value = to_decimal(value)
    if value < 0:
        raise CartError("Discount cannot be negative")
    if discount_type == PERCENT and value > HUNDRED:
        raise CartError("Percent discount cannot exceed 100")
    cart.discount_type = discount_type
    cart.discount_value = value
    return _recalculate(cart)


def remove_discount(cart: Cart) -> Cart:
    cart.discount_type = FIXED
    cart.discount_value = ZERO
    return _recalculate(cart)


def set_tax(cart: Cart, tax_type: str, value: Any) -> Cart:
    value = to_decimal(value)
    if value < 0:
        raise CartError("Tax cannot be negative")
    cart.tax_type = _adjustment_type(tax_type, PERCENT)
    cart.tax_value = value
    return _recalculate(cart)


def reset_tax(cart: Cart) -> Cart:
    cart.tax_type = PERCENT
    cart.tax_value = DEFAULT_TAX_VALUE
    return _recalculate(cart)


# Hold / retrieve

def hold_cart(cart: Cart, note: Optional[str] = None) -> Optional[SavedCart]:
    """Park the active cart and clear it. Empty carts are not parked."""
    if not cart.items:
        return None
    saved = SavedCart(
        id=f"cart-{uuid.uuid4().hex[:12]}",
        timestamp=utcnow(),
        note=note or None,
        items=[replace(item) for item in cart.items],
        totals=cart.totals,
        discount_type=cart.discount_type,
        discount_value=cart.discount_value,
        tax_type=cart.tax_type,
        tax_value=cart.tax_value,
        customer_id=cart.customer_id,
        customer_name=cart.customer_name if cart.customer_name != WALK_IN_NAME else None,
        payment_method=cart.payment_method,
    )
    cart.saved_carts.append(saved)
    clear_cart(cart)
    return saved


def retrieve_cart(cart: Cart, cart_id: str) -> Cart:
    """Restore a parked cart into the active slot; tender is cleared."""
    saved = next((s for s in cart.saved_carts if s.id == cart_id), None)
    if saved is None:
        raise CartError(f"Saved cart {cart_id} not found")
    cart.items = [replace(item) for item in saved.items]
    cart.discount_type = saved.discount_type
    cart.discount_value = saved.discount_value
    cart.tax_type = saved.tax_type
    cart.tax_value = saved.tax_value
    cart.customer_id = saved.customer_id
    cart.customer_name = saved.customer_name or WALK_IN_NAME
    cart.payment_method = saved.payment_method
    cart.cash_received = None
    cart.change = None
    remove_saved_cart(cart, cart_id)
    return _recalculate(cart)


def remove_saved_cart(cart: Cart, cart_id: str) -> Cart:
    cart.saved_carts = [s for s in cart.saved_carts if s.id != cart_id]
    return cart


def build_sale_request(cart: Cart, notes: Optional[str] = None) -> dict:
    """Checkout payload accepted by pos_service.process_sale."""
    return {
        "items": [
            {
                "product_id": item.product_id,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "discount": item.discount,
                "tax": item.tax,
            }
            for item in cart.items
        ],
        "subtotal": cart.totals.subtotal,
        "discount": cart.totals.discount,
        "discount_percent": cart.totals.discount_percent,
        "tax": cart.totals.tax,
        "total": cart.totals.total,
        "payment_method": cart.payment_method,
        "customer_id": cart.customer_id,
        "cash_received": cart.cash_received,
        "change": cart.change,
        "notes": notes,
    }
