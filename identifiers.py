"""Product codes of the form ``<PREFIX>-<sequence>``, e.g. ``MCG-001``.

Each prefix has its own persisted counter. The counter row is locked and
bumped inside the same transaction as the product insert, so a code is handed
out once and never again, whatever happens to the product afterwards.
"""
import logging
import re

from sqlalchemy import select

from models import Product, ProductSequence, db

logger = logging.getLogger(__name__)

CATEGORY_PREFIXES = {
    'panels': 'MCG',
    'bots': 'MCB',
    'websites': 'MCW',
    'youtube': 'MCY',
}
FALLBACK_PREFIX = 'MCP'

PRODUCT_CODE_RE = re.compile(r'^([A-Z]{3})-(\d{3,})$')


def prefix_for(category):
    return CATEGORY_PREFIXES.get((category or '').strip().lower(), FALLBACK_PREFIX)


def format_product_code(prefix, sequence):
    return f'{prefix}-{sequence:03d}'


def parse_product_code(code):
    match = PRODUCT_CODE_RE.match(code or '')
    if match is None:
        return None
    return match.group(1), int(match.group(2))


def _highest_issued(prefix):
    # Seeds a missing counter from codes already in the table.
    highest = 0
    codes = db.session.scalars(select(Product.product_id).where(Product.product_id.like(f'{prefix}-%')))
    for code in codes:
        parsed = parse_product_code(code)
        if parsed and parsed[0] == prefix:
            highest = max(highest, parsed[1])
    return highest


def _is_issued(code):
    return db.session.scalar(select(Product.id).where(Product.product_id == code).limit(1)) is not None


def next_product_code(category):
    """Reserve the next code for ``category`` in the current transaction.

    Nothing is committed here; the caller commits together with the product
    row. Two writers racing on a brand new prefix both try to insert the
    counter row and one of them fails with an integrity error.

    A counter that has fallen behind the table (restored backup, rows
    imported by hand) is moved past the highest code already issued.
    """
    prefix = prefix_for(category)
    stmt = select(ProductSequence).where(ProductSequence.prefix == prefix).with_for_update()
    counter = db.session.scalars(stmt).first()
    if counter is None:
        counter = ProductSequence(prefix=prefix, last_value=_highest_issued(prefix))
        db.session.add(counter)
    counter.last_value += 1
    code = format_product_code(prefix, counter.last_value)
    if _is_issued(code):
        counter.last_value = _highest_issued(prefix) + 1
        logger.warning(f"Counter for {prefix} was behind ({code} taken), reseeded to {counter.last_value}")
        code = format_product_code(prefix, counter.last_value)
    return code
