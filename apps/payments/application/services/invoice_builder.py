from __future__ import annotations

from decimal import Decimal

from apps.catalog.models import Product
from apps.orders.models import Order
from apps.payments.application.services.qpay_config import QPaySettings
from apps.payments.domain.errors import InsufficientLineDataError
from apps.payments.domain.policies import quantize_money, vat_inclusive_amount
from apps.payments.domain.ports import InvoiceLine, InvoiceReceiver, InvoiceRequest


def _line_vat(product: Product | None, line_total: Decimal) -> Decimal | None:
    """VAT for a classified product, None when the product carries no classification."""
    if product is None or not product.has_tax_classification:
        return None
    if product.tax_type != Product.TAX_VAT_ABLE:
        return Decimal("0.00")
    return vat_inclusive_amount(line_total)


def _allocate_vat(line_totals: list[Decimal]) -> list[Decimal]:
    """Split the VAT of the combined amount across lines, last line takes the rounding remainder."""
    pool = vat_inclusive_amount(sum(line_totals, Decimal("0")))
    total = sum(line_totals, Decimal("0"))
    shares: list[Decimal] = []
    allocated = Decimal("0")
    for index, line_total in enumerate(line_totals):
        if index == len(line_totals) - 1:
            share = pool - allocated
        elif total > 0:
            share = quantize_money(pool * line_total / total)
        else:
            share = Decimal("0.00")
        allocated += share
        shares.append(share)
    return shares


class InvoiceRequestBuilder:
    @staticmethod
    def receiver_for(order: Order) -> InvoiceReceiver:
        user = order.user
        name = order.full_name or (user.get_full_name() if user is not None else "") or "Customer"
        register = order.ebarimt_receiver if order.ebarimt_receiver_type == Order.RECEIVER_COMPANY else ""
        return InvoiceReceiver(
            register=register or "",
            name=name,
            email=order.email or (getattr(user, "email", "") or ""),
            phone=order.phone_number or "",
        )

    @staticmethod
    def build_lines(order: Order) -> list[InvoiceLine]:
        items = list(order.items.select_related("product").order_by("id"))
        drafts = []
        for item in items:
            if item.quantity <= 0 or item.price is None or item.price <= 0:
                raise InsufficientLineDataError(
                    f"Order item {item.product_name!r} has no usable quantity or price.",
                    field="items",
                )
            line_total = item.price * item.quantity
            drafts.append((item, line_total, _line_vat(item.product, line_total)))

        unclassified = [line_total for _, line_total, vat in drafts if vat is None]
        fallback_shares = iter(_allocate_vat(unclassified)) if unclassified else iter(())

        lines = []
        for item, line_total, vat in drafts:
            product = item.product
            lines.append(
                InvoiceLine(
                    description=f"{item.product_name} x{item.quantity} - {item.price:.2f} MNT",
                    quantity=Decimal(item.quantity),
                    unit_price=Decimal(item.price),
                    vat_amount=vat if vat is not None else next(fallback_shares),
                    tax_product_code=getattr(product, "tax_product_code", "") or "",
                    classification_code=getattr(product, "classification_code", "") or "",
                    barcode=getattr(product, "barcode", "") or "",
                    note=(getattr(product, "description", "") or "-")[:255],
                )
            )
        return lines

    @staticmethod
    def build(order: Order, *, config: QPaySettings, itemized: bool | None = None) -> InvoiceRequest:
        lines: list[InvoiceLine] = []
        if itemized is not False:
            has_items = order.items.exists()
            if itemized is None:
                itemized = has_items
            if itemized and not has_items:
                raise InsufficientLineDataError("Itemized invoice requires at least one order line.", field="items")
            if itemized:
                lines = InvoiceRequestBuilder.build_lines(order)

        receiver = InvoiceRequestBuilder.receiver_for(order)
        if itemized:
            receiver_code = receiver.phone or (str(order.user_id) if order.user_id else "") or f"RECV-{order.id}"
        else:
            receiver_code = "terminal"
        return InvoiceRequest(
            order_id=order.id,
            amount=quantize_money(order.total_amount),
            description=f"GERAR.MN - Захиалга #{order.id}"[:255],
            callback_url=config.callback_url(order.id),
            receiver_code=receiver_code,
            receiver=receiver,
            itemized=itemized,
            lines=tuple(lines),
        )
