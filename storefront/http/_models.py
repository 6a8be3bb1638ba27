"""
Request and response models.

Requests convert to domain values with to_domain(); responses are built
from domain values with from_domain(). Amounts travel as JSON numbers in
rupees.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from storefront.cart import Cart, CartLine, CartValidation
from storefront.coupons import Coupon, CouponDraft, CouponQuote, CouponUsage, DiscountType
from storefront.orders import (
    Buyer,
    CheckoutItem,
    CheckoutRequest,
    CouponInfo,
    Order,
    OrderItem,
    OrderPage,
    Refund,
    ShippingDetails,
)
from storefront.payments import PaymentOrder, PaymentSummary, VerifiedPayment, WebhookReceipt
from storefront.shipping import (
    ServiceStatus,
    ShipmentSnapshot,
    ShippingLabel,
    ShippingWebhookReceipt,
    TrackingView,
)


def _amount(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


class _In(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutItemIn(_In):
    product_id: str = Field(validation_alias=AliasChoices("productId", "product_id"))
    size: str = Field(validation_alias=AliasChoices("size", "variantSize", "variant_size"))
    quantity: int
    price: Decimal

    def to_domain(self) -> CheckoutItem:
        return CheckoutItem(self.product_id, self.size, self.quantity, self.price)


class CouponInfoIn(_In):
    discount_amount: Decimal = Field(
        validation_alias=AliasChoices("discountAmount", "discount_amount")
    )
    code: str | None = None

    def to_domain(self) -> CouponInfo:
        return CouponInfo(self.discount_amount, self.code)


class ShippingDetailsIn(_In):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    pincode: str = Field(min_length=1)
    email: str | None = None
    country: str = "India"

    def to_domain(self) -> ShippingDetails:
        return ShippingDetails(
            name=self.name,
            phone=self.phone,
            address=self.address,
            city=self.city,
            state=self.state,
            pincode=self.pincode,
            email=self.email,
            country=self.country,
        )


class CreateOrderIn(_In):
    items: list[CheckoutItemIn]
    total_amount: Decimal = Field(validation_alias=AliasChoices("totalAmount", "total_amount"))
    shipping_details: ShippingDetailsIn = Field(
        validation_alias=AliasChoices("shippingDetails", "shipping_details")
    )
    coupon_info: CouponInfoIn | None = Field(
        default=None, validation_alias=AliasChoices("couponInfo", "coupon_info")
    )

    def to_domain(self, buyer: Buyer) -> CheckoutRequest:
        return CheckoutRequest(
            items=tuple(item.to_domain() for item in self.items),
            client_total=self.total_amount,
            shipping=self.shipping_details.to_domain(),
            buyer=buyer,
            coupon=self.coupon_info.to_domain() if self.coupon_info else None,
        )


class CartCheckoutIn(_In):
    total_amount: Decimal = Field(validation_alias=AliasChoices("totalAmount", "total_amount"))
    shipping_details: ShippingDetailsIn = Field(
        validation_alias=AliasChoices("shippingDetails", "shipping_details")
    )
    coupon_info: CouponInfoIn | None = Field(
        default=None, validation_alias=AliasChoices("couponInfo", "coupon_info")
    )


class OrderStatusIn(_In):
    status: str


class OrderCreatedOut(BaseModel):
    id: str
    order_number: str
    status: str
    total_amount: float
    payment_status: str
    created_at: datetime | None

    @classmethod
    def from_domain(cls, order: Order) -> OrderCreatedOut:
        return cls(
            id=order.id,
            order_number=order.order_number,
            status=order.status.value,
            total_amount=float(order.total_amount),
            payment_status=order.payment_status.value,
            created_at=order.created_at,
        )


class OrderItemOut(BaseModel):
    product_id: str
    variant_id: str
    product_name: str
    variant_size: str
    price: float
    quantity: int
    subtotal: float

    @classmethod
    def from_domain(cls, item: OrderItem) -> OrderItemOut:
        return cls(
            product_id=item.product_id,
            variant_id=item.variant_id,
            product_name=item.product_name,
            variant_size=item.variant_size,
            price=float(item.price),
            quantity=item.quantity,
            subtotal=float(item.subtotal),
        )


class RefundOut(BaseModel):
    id: str
    order_id: str
    gateway_refund_id: str
    amount: float
    status: str
    reason: str | None
    created_at: datetime

    @classmethod
    def from_domain(cls, refund: Refund) -> RefundOut:
        return cls(
            id=refund.id,
            order_id=refund.order_id,
            gateway_refund_id=refund.gateway_refund_id,
            amount=float(refund.amount),
            status=refund.status,
            reason=refund.reason,
            created_at=refund.created_at,
        )


class OrderOut(BaseModel):
    id: str
    order_number: str
    user_id: str | None
    status: str
    payment_status: str
    shipment_status: str | None
    items: list[OrderItemOut]
    subtotal: float
    coupon_code: str | None
    coupon_discount: float
    total_amount: float
    shipping_details: dict[str, Any]
    gateway_order_id: str | None
    gateway_payment_id: str | None
    awb_code: str | None
    courier_name: str | None
    tracking_url: str | None
    estimated_delivery: str | None
    refunds: list[RefundOut]
    refund_required: bool
    created_at: datetime | None
    paid_at: datetime | None
    shipped_at: datetime | None
    delivered_at: datetime | None
    cancelled_at: datetime | None

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        s = order.shipping
        return cls(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status.value,
            payment_status=order.payment_status.value,
            shipment_status=order.shipment_status.value if order.shipment_status else None,
            items=[OrderItemOut.from_domain(i) for i in order.items],
            subtotal=float(order.subtotal),
            coupon_code=order.coupon_code,
            coupon_discount=float(order.coupon_discount),
            total_amount=float(order.total_amount),
            shipping_details={
                "name": s.name,
                "phone": s.phone,
                "email": s.email,
                "address": s.address,
                "city": s.city,
                "state": s.state,
                "pincode": s.pincode,
                "country": s.country,
            },
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=order.gateway_payment_id,
            awb_code=order.awb_code,
            courier_name=order.courier_name,
            tracking_url=order.tracking_url,
            estimated_delivery=order.estimated_delivery,
            refunds=[RefundOut.from_domain(r) for r in order.refunds],
            refund_required=order.refund_required,
            created_at=order.created_at,
            paid_at=order.paid_at,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
        )


class OrderPageOut(BaseModel):
    orders: list[OrderOut]
    total: int
    page: int
    pages: int

    @classmethod
    def from_domain(cls, page: OrderPage) -> OrderPageOut:
        return cls(
            orders=[OrderOut.from_domain(o) for o in page.orders],
            total=page.total,
            page=page.page,
            pages=page.pages,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


class CartAddIn(_In):
    product_id: str | None = Field(default=None, validation_alias=AliasChoices("productId", "product_id"))
    variant_id: str | None = Field(default=None, validation_alias=AliasChoices("variantId", "variant_id"))
    quantity: int = 1


class CartUpdateIn(_In):
    item_id: str = Field(validation_alias=AliasChoices("itemId", "item_id"))
    quantity: int


class CartLineOut(BaseModel):
    id: str
    product_id: str
    variant_id: str
    product_name: str
    variant_size: str
    price: float
    quantity: int
    subtotal: float
    image: str | None

    @classmethod
    def from_domain(cls, line: CartLine) -> CartLineOut:
        return cls(
            id=line.id,
            product_id=line.product_id,
            variant_id=line.variant_id,
            product_name=line.product_name,
            variant_size=line.variant_size,
            price=float(line.price),
            quantity=line.quantity,
            subtotal=float(line.subtotal),
            image=line.image,
        )


class CartOut(BaseModel):
    items: list[CartLineOut]
    total_items: int
    total_amount: float

    @classmethod
    def from_domain(cls, cart: Cart) -> CartOut:
        return cls(
            items=[CartLineOut.from_domain(line) for line in cart.lines],
            total_items=cart.total_items,
            total_amount=float(cart.total_amount),
        )


class CartValidationOut(BaseModel):
    cart: CartOut
    removed: list[CartLineOut]
    repriced: list[CartLineOut]

    @classmethod
    def from_domain(cls, validation: CartValidation) -> CartValidationOut:
        return cls(
            cart=CartOut.from_domain(validation.cart),
            removed=[CartLineOut.from_domain(line) for line in validation.removed],
            repriced=[CartLineOut.from_domain(line) for line in validation.repriced],
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Payments
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentOrderIn(_In):
    order_id: str = Field(validation_alias=AliasChoices("orderId", "order_id"))
    amount: Decimal


class VerifyPaymentIn(_In):
    order_id: str = Field(validation_alias=AliasChoices("order_id", "orderId"))
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class RefundIn(_In):
    order_id: str = Field(validation_alias=AliasChoices("orderId", "order_id"))
    amount: Decimal | None = None
    reason: str | None = None


class PaymentOrderOut(BaseModel):
    id: str
    amount: int
    currency: str
    key: str
    name: str
    description: str
    prefill: dict[str, str]
    theme: dict[str, str]
    order_id: str
    order_number: str

    @classmethod
    def from_domain(cls, p: PaymentOrder) -> PaymentOrderOut:
        return cls(
            id=p.gateway_order_id,
            amount=p.amount,
            currency=p.currency,
            key=p.key_id,
            name=p.name,
            description=p.description,
            prefill=p.prefill,
            theme={"color": p.theme_color},
            order_id=p.order_id,
            order_number=p.order_number,
        )


class ShipmentOut(BaseModel):
    awb_code: str | None
    status: str | None
    courier_name: str | None
    tracking_url: str | None
    estimated_delivery: str | None

    @classmethod
    def from_domain(cls, s: ShipmentSnapshot) -> ShipmentOut:
        return cls(
            awb_code=s.awb,
            status=s.status.value if s.status else None,
            courier_name=s.courier_name,
            tracking_url=s.tracking_url,
            estimated_delivery=s.estimated_delivery,
        )


class VerifiedPaymentOut(BaseModel):
    order: OrderOut
    shipping: ShipmentOut

    @classmethod
    def from_domain(cls, v: VerifiedPayment) -> VerifiedPaymentOut:
        return cls(order=OrderOut.from_domain(v.order), shipping=ShipmentOut.from_domain(v.shipping))


class PaymentSummaryOut(BaseModel):
    order_id: str
    order_number: str
    payment_status: str
    razorpay_order_id: str | None
    razorpay_payment_id: str | None
    payment_method: str | None
    total_amount: float
    paid_at: datetime | None

    @classmethod
    def from_domain(cls, s: PaymentSummary) -> PaymentSummaryOut:
        return cls(
            order_id=s.order_id,
            order_number=s.order_number,
            payment_status=s.payment_status.value,
            razorpay_order_id=s.gateway_order_id,
            razorpay_payment_id=s.gateway_payment_id,
            payment_method=s.payment_method,
            total_amount=float(s.total_amount),
            paid_at=s.paid_at,
        )


class WebhookReceiptOut(BaseModel):
    status: str = "success"
    event: str
    processed_at: datetime

    @classmethod
    def from_domain(cls, r: WebhookReceipt) -> WebhookReceiptOut:
        return cls(event=r.event, processed_at=r.processed_at)


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════


class CouponValidateIn(_In):
    code: str = Field(min_length=1)
    order_amount: Decimal = Field(validation_alias=AliasChoices("order_amount", "orderAmount"))


class CouponApplyIn(_In):
    coupon_id: str
    order_id: str
    order_amount: Decimal
    discount_amount: Decimal


class CouponIn(_In):
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    description: str | None = None
    min_order_amount: Decimal | None = None
    max_discount_amount: Decimal | None = None
    usage_limit: int | None = None
    is_active: bool = True
    starts_at: datetime | None = None
    expires_at: datetime | None = None

    def to_domain(self) -> CouponDraft:
        return CouponDraft(**self.model_dump())


class CouponPatchIn(_In):
    code: str | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None
    description: str | None = None
    min_order_amount: Decimal | None = None
    max_discount_amount: Decimal | None = None
    usage_limit: int | None = None
    is_active: bool | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None

    def to_domain(self) -> dict[str, Any]:
        """Only the fields the caller sent."""
        return self.model_dump(exclude_unset=True)


class CouponOut(BaseModel):
    id: str
    code: str
    discount_type: str
    discount_value: float
    description: str | None
    min_order_amount: float | None
    max_discount_amount: float | None
    usage_limit: int | None
    times_used: int
    is_active: bool
    starts_at: datetime | None
    expires_at: datetime | None

    @classmethod
    def from_domain(cls, c: Coupon) -> CouponOut:
        return cls(
            id=c.id,
            code=c.code,
            discount_type=c.discount_type.value,
            discount_value=float(c.discount_value),
            description=c.description,
            min_order_amount=_amount(c.min_order_amount),
            max_discount_amount=_amount(c.max_discount_amount),
            usage_limit=c.usage_limit,
            times_used=c.times_used,
            is_active=c.is_active,
            starts_at=c.starts_at,
            expires_at=c.expires_at,
        )


class CouponQuoteOut(BaseModel):
    coupon: CouponOut
    discount_amount: float
    final_amount: float

    @classmethod
    def from_domain(cls, q: CouponQuote) -> CouponQuoteOut:
        return cls(
            coupon=CouponOut.from_domain(q.coupon),
            discount_amount=float(q.discount_amount),
            final_amount=float(q.final_amount),
        )


class CouponUsageOut(BaseModel):
    id: str
    coupon_id: str
    user_id: str | None
    order_id: str
    discount_amount: float
    order_amount: float
    used_at: datetime

    @classmethod
    def from_domain(cls, u: CouponUsage) -> CouponUsageOut:
        return cls(
            id=u.id,
            coupon_id=u.coupon_id,
            user_id=u.user_id,
            order_id=u.order_id,
            discount_amount=float(u.discount_amount),
            order_amount=float(u.order_amount),
            used_at=u.used_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping
# ═══════════════════════════════════════════════════════════════════════════════


class ShipmentIn(_In):
    order_id: str = Field(validation_alias=AliasChoices("orderId", "order_id"))


class TrackingOut(BaseModel):
    awb_code: str
    status: str | None
    raw_status: str
    delivered: bool
    courier_name: str | None
    tracking_url: str | None
    estimated_delivery: str | None
    order_number: str
    history: list[dict[str, Any]]

    @classmethod
    def from_domain(cls, t: TrackingView) -> TrackingOut:
        return cls(
            awb_code=t.awb,
            status=t.status.value if t.status else None,
            raw_status=t.raw_status,
            delivered=t.delivered,
            courier_name=t.courier_name,
            tracking_url=t.tracking_url,
            estimated_delivery=t.estimated_delivery,
            order_number=t.order_number,
            history=[dict(h) for h in t.history],
        )


class LabelOut(BaseModel):
    order_number: str
    awb_code: str
    label_url: str

    @classmethod
    def from_domain(cls, label: ShippingLabel) -> LabelOut:
        return cls(order_number=label.order_number, awb_code=label.awb, label_url=label.label_url)


class ServiceStatusOut(BaseModel):
    service: str
    status: str
    message: str

    @classmethod
    def from_domain(cls, s: ServiceStatus) -> ServiceStatusOut:
        return cls(
            service=s.service,
            status="operational" if s.operational else "error",
            message=s.message,
        )


class ShippingWebhookOut(BaseModel):
    status: str = "success"
    message: str
    order_id: str | None
    processed_at: datetime

    @classmethod
    def from_domain(cls, r: ShippingWebhookReceipt) -> ShippingWebhookOut:
        return cls(message=r.message, order_id=r.order_id, processed_at=r.processed_at)
