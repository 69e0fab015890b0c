"""CSV export of a shop's donations for a date range."""
import csv
import datetime
import io

from . import ledger

CSV_HEADER = ['order_id', 'donation_amount', 'created_at']


def export_csv(db, shop, start_date: datetime.date, end_date: datetime.date) -> bytes:
    """Donations created between start_date and end_date, both days included."""
    start = datetime.datetime.combine(start_date, datetime.time.min)
    end = datetime.datetime.combine(end_date + datetime.timedelta(days=1), datetime.time.min)
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(CSV_HEADER)
    for d in ledger.find_in_range(db, shop, start, end):
        writer.writerow([d.order_id, d.amount_display, d.created_at.isoformat(sep=' ', timespec='seconds')])
    return out.getvalue().encode('utf-8')
