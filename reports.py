import csv
import io
from datetime import date, datetime
from html import escape
from typing import Iterable, List, Optional

from config import settings
from dashboard import DashboardSummary
from schemas import Order, OrderItem, Product

CSV_HEADERS = [
    "Order ID", "Date", "Customer Name", "Phone", "Address",
    "M-Pesa Code", "Total (KSh)", "Status", "Items Summary",
]


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def report_filename(today: date) -> str:
    return f"CWI_Financial_Report_{today.isoformat()}.csv"


def orders_csv(orders: List[Order], summary: DashboardSummary, generated_at: datetime) -> str:
    """
    Summary block, a blank line, then one row per order. Free-text fields are
    always quoted with embedded double quotes doubled.
    """
    if not orders:
        raise ValueError("No data available to export for the selected period.")

    buf = io.StringIO()
    plain = csv.writer(buf, lineterminator="\n")
    plain.writerow(["Report Generated", generated_at.strftime("%Y-%m-%d %H:%M:%S")])
    plain.writerow(["Total Revenue", f"{settings.CURRENCY_LABEL} {_num(summary.total_revenue)}"])
    plain.writerow(["Active Orders", summary.active_orders])
    plain.writerow(["B2B Leads (Count)", summary.b2b_leads])
    plain.writerow(["Low Stock Alerts", summary.low_stock])
    buf.write("\n")
    plain.writerow(CSV_HEADERS)

    for order in orders:
        row = [
            order.id,
            order.created_at.date().isoformat() if order.created_at else "",
            _quote(order.customer_name),
            _quote(order.customer_phone),
            _quote(order.shipping_address),
            _quote(order.payment_reference),
            _num(order.total_amount),
            order.status,
            _quote(order.items_summary),
        ]
        buf.write(",".join(str(v) for v in row) + "\n")
    return buf.getvalue()


def _quote(text: Optional[str]) -> str:
    return '"' + (text or "").replace('"', '""') + '"'


_SLIP_STYLE = """
body { font-family: 'Inter', sans-serif; padding: 2rem; color: #333; max-width: 800px; margin: 0 auto; }
.header { display: flex; justify-content: space-between; margin-bottom: 2rem; border-bottom: 2px solid #d4af37; padding-bottom: 1rem; }
.logo { font-size: 1.5rem; font-weight: bold; color: #0b2318; }
.invoice-details { text-align: right; }
.customer-details { margin-bottom: 2rem; background: #f9f9f9; padding: 1.5rem; border-radius: 8px; }
table { width: 100%; border-collapse: collapse; margin-bottom: 2rem; }
th, td { text-align: left; padding: 0.8rem; border-bottom: 1px solid #eee; }
th { background-color: #f0f0f0; font-weight: 600; }
.total-section { text-align: right; font-size: 1.2rem; font-weight: bold; margin-top: 1rem; }
.footer { margin-top: 4rem; border-top: 1px dashed #ccc; padding-top: 1rem; font-size: 0.9rem; color: #666; text-align: center; }
@media print { body { padding: 0; } .customer-details { background: none; border: 1px solid #eee; } }
"""


def _money(value: float) -> str:
    return f"{settings.CURRENCY_LABEL} {value:,.2f}"


def packing_slip_html(order: Order, items: Iterable[OrderItem], products: Iterable[Product]) -> str:
    """Stand-alone printable document; opens the print dialog on load."""
    names = {str(p.id): p.name for p in products}
    rows = []
    for item in items:
        if str(item.order_id) != str(order.id):
            continue
        name = names.get(str(item.product_id), "Unknown Item")
        rows.append(
            "<tr>"
            f"<td>{escape(name)} <br><small style=\"color:#666\">{escape(item.grind_type)}</small></td>"
            f"<td>{item.quantity}</td>"
            f"<td>{_money(item.price_at_purchase)}</td>"
            f"<td>{_money(item.quantity * item.price_at_purchase)}</td>"
            "</tr>"
        )
    order_date = order.created_at.date().isoformat() if order.created_at else ""
    company = escape(settings.COMPANY_NAME)
    return f"""<html>
<head>
<title>Packing Slip #{escape(order.id)}</title>
<style>{_SLIP_STYLE}</style>
</head>
<body>
<div class="header">
  <div class="logo">{company}</div>
  <div class="invoice-details">
    <p><strong>Order #{escape(order.id)}</strong></p>
    <p>Date: {order_date}</p>
    <p>Payment: {escape(order.payment_reference or 'Pending')}</p>
  </div>
</div>
<div class="customer-details">
  <h3 style="margin-top:0;">Ship To:</h3>
  <p><strong>{escape(order.customer_name)}</strong></p>
  <p>{escape(order.customer_phone)}</p>
  <p>{escape(order.shipping_address)}</p>
</div>
<table>
  <thead><tr><th>Item</th><th>Quantity</th><th>Price</th><th>Total</th></tr></thead>
  <tbody>
{''.join(rows)}
  </tbody>
</table>
<div class="total-section">Total: {_money(order.total_amount)}</div>
<div class="footer">
  <p>Thank you for your business!</p>
  <p>{company} Limited | Nairobi, Kenya</p>
</div>
<script>window.onload = function() {{ window.print(); }}</script>
</body>
</html>
"""
