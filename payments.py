"""Mocked checkout: plan quotes and order acknowledgements, no settlement."""
import logging
import time
import uuid
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

import storage
from errors import NotFoundError
from models import OrderStatus

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
PAYMENT_METHODS = ('upi', 'card', 'netbanking', 'cod')


@dataclass(frozen=True)
class PaymentPlan:
    id: str
    name: str
    description: str
    months: int = 1
    fee_rate: Decimal = Decimal('0')
    flat_fee: Decimal = Decimal('0')
    upfront: Decimal = None  # fixed first payment, balance on delivery
    recommended: bool = False

    def quote(self, price):
        price = Decimal(price).quantize(CENTS, rounding=ROUND_HALF_UP)
        fee = (price * self.fee_rate + self.flat_fee).quantize(CENTS, rounding=ROUND_HALF_UP)
        total = price + fee
        if self.upfront is not None:
            due_now = min(self.upfront, total)
        elif self.months > 1:
            due_now = (total / self.months).quantize(Decimal('1'), rounding=ROUND_CEILING)
        else:
            due_now = total
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'total_months': self.months,
            'monthly_amount': f'{due_now:.2f}',
            'processing_fee': f'{fee:.2f}',
            'total_amount': f'{total:.2f}',
            'recommended': self.recommended,
        }


PAYMENT_PLANS = {
    plan.id: plan for plan in (
        PaymentPlan('immediate', 'Immediate Payment', 'Pay the full price at once'),
        PaymentPlan('emi_3', '3 Month EMI', 'Three monthly instalments, 5% processing fee',
                    months=3, fee_rate=Decimal('0.05'), recommended=True),
        PaymentPlan('emi_6', '6 Month EMI', 'Six monthly instalments, 8% processing fee',
                    months=6, fee_rate=Decimal('0.08')),
        PaymentPlan('emi_12', '12 Month EMI', 'Twelve monthly instalments, 12% processing fee',
                    months=12, fee_rate=Decimal('0.12')),
        PaymentPlan('advance_booking', 'Advance Booking', 'Pay 5,000 now and the rest on delivery',
                    flat_fee=Decimal('500'), upfront=Decimal('5000')),
    )
}


def quote_all(product):
    return [plan.quote(product.price) for plan in PAYMENT_PLANS.values()]


def transaction_reference(method):
    return f'{method.upper()}_{int(time.time() * 1000)}'


def process_payment(data):
    """Record an order for an active product and notify its owner.

    ``data`` is the validated checkout body. Returns ``(order, quote)``.
    """
    product = storage.products.get_by_code(data['product_id'])
    if product is None:
        raise NotFoundError('Product not found')

    method = data['payment_method']
    quote = PAYMENT_PLANS[data['payment_option']].quote(product.price)
    order_id = f'ORD-{uuid.uuid4().hex[:12].upper()}'
    customer = {
        'name': data['customer_name'],
        'phone': data['customer_phone'],
        'email': data.get('customer_email'),
        'address': data.get('customer_address'),
    }

    order = storage.create_order(
        {
            'order_id': order_id,
            'product_id': product.product_id,
            'seller_id': product.owner_id,
            'customer_name': customer['name'],
            'customer_phone': customer['phone'],
            'customer_email': customer['email'],
            'customer_address': customer['address'],
            'payment_method': method,
            'payment_option': quote['id'],
            'amount': Decimal(quote['monthly_amount']),
            'total_amount': Decimal(quote['total_amount']),
            'status': OrderStatus.CONFIRMED if method == 'cod' else OrderStatus.PENDING,
            'transaction_id': transaction_reference(method),
            'notes': data.get('notes'),
        },
        notification={
            'message_type': 'order_notification',
            'subject': f'New order {order_id} for {product.name}',
            'content': (f"{customer['name']} ordered {product.product_id} ({product.name}) "
                        f"with {quote['name']} via {method.upper()}. "
                        f"Due now: {quote['monthly_amount']}, total: {quote['total_amount']}."),
            'customer_info': customer,
            'priority': 'high',
        },
    )
    logger.info(f"Order {order.order_id} recorded for {product.product_id} ({method}, {quote['id']})")
    return order, quote
