from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')


def compute_donation(line_items, donation_products):
    """
    Donation owed for an order: sum of price * quantity * percentage / 100 over
    the line items whose product is configured for donation.

    Rounded to cents once, on the total. Returns None when nothing is owed.
    Refund lines (negative price or quantity) are summed as-is.
    """
    percentages = {str(p.product_id): Decimal(p.percentage) for p in donation_products}
    total = Decimal('0')
    for item in line_items:
        if item.product_id is None:
            continue
        percentage = percentages.get(str(item.product_id))
        if percentage is None:
            continue
        total += Decimal(item.price) * item.quantity * percentage / 100
    amount = total.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount == 0:
        return None
    return amount
