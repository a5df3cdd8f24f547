"""
PDF invoices.

generate_invoice() only builds the document; callers serialize it with
invoice_bytes() and pick the download name with invoice_filename().
"""
from typing import List, Sequence, Union

from fpdf import FPDF
from fpdf.fonts import FontFace

from schemas import CartLine, OrderItem, ShippingAddress

BRAND = "SkinAura"
HEADER_COLOR = (44, 62, 80)
FOOTER_COLOR = (100, 100, 100)


def latin1(text: str) -> str:
    return (text or "").encode("latin-1", "replace").decode("latin-1")


def format_amount(value: float) -> str:
    # core PDF fonts are Latin-1 only, so no rupee sign
    return f"Rs. {value:,.2f}"


def format_invoice_items(items: Sequence[Union[CartLine, OrderItem]]) -> List[dict]:
    """Flatten cart lines or order lines into invoice rows.

    Order lines carry the price captured at purchase; cart lines are priced
    from the product as it is now.
    """
    rows = []
    for item in items:
        price = item.price if isinstance(item, OrderItem) else item.product.price
        rows.append({
            "name": item.product.name,
            "quantity": item.quantity,
            "price": price,
            "total": price * item.quantity,
        })
    return rows


def invoice_filename(order_id: str) -> str:
    return f"invoice-{order_id}.pdf"


def generate_invoice(
    order_id: str,
    order_date: str,
    items: Sequence[Union[CartLine, OrderItem]],
    shipping_address: ShippingAddress,
    subtotal: float,
    shipping_cost: float,
    total: float,
    payment_method: str,
) -> FPDF:
    pdf = FPDF()
    pdf.set_title(f"Invoice INV-{order_id}")
    pdf.set_author(BRAND)
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    # header
    pdf.set_text_color(*HEADER_COLOR)
    pdf.set_font("Helvetica", size=20)
    pdf.cell(0, 10, BRAND, align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", size=16)
    pdf.cell(0, 8, "INVOICE", align="C", new_x="LMARGIN", new_y="NEXT")

    pdf.set_font("Helvetica", size=10)
    pdf.cell(0, 5, f"Invoice #: INV-{order_id}", new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 5, f"Date: {order_date}", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(5)

    # bill to
    pdf.set_font("Helvetica", size=12)
    pdf.cell(0, 6, "Bill To:", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", size=10)
    bill_to = [shipping_address.full_name, shipping_address.address_line1]
    if shipping_address.address_line2:
        bill_to.append(shipping_address.address_line2)
    bill_to.append(f"{shipping_address.city}, {shipping_address.state} - {shipping_address.zip_code}")
    bill_to.append(f"Phone: {shipping_address.phone_number}")
    for line in bill_to:
        pdf.cell(0, 5, latin1(line), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(5)

    # line items
    with pdf.table(
        col_widths=(90, 25, 35, 40),
        text_align=("LEFT", "CENTER", "RIGHT", "RIGHT"),
        headings_style=FontFace(emphasis="BOLD", color=(255, 255, 255), fill_color=HEADER_COLOR),
        cell_fill_color=(242, 242, 242),
        cell_fill_mode="ROWS",
    ) as table:
        heading = table.row()
        for title in ("Item", "Quantity", "Price", "Total"):
            heading.cell(title)
        for item in format_invoice_items(items):
            row = table.row()
            row.cell(latin1(item["name"]))
            row.cell(str(item["quantity"]))
            row.cell(format_amount(item["price"]))
            row.cell(format_amount(item["total"]))
    pdf.ln(8)

    # summary
    summary_x = 130
    pdf.set_x(summary_x)
    pdf.cell(60, 6, "Summary", new_x="LMARGIN", new_y="NEXT")
    for label, amount in (("Subtotal:", subtotal), ("Shipping:", shipping_cost)):
        pdf.set_x(summary_x)
        pdf.cell(30, 7, label)
        pdf.cell(30, 7, format_amount(amount), align="R", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(3)
    pdf.set_font("Helvetica", style="B", size=12)
    pdf.set_x(summary_x)
    pdf.cell(30, 7, "Total:")
    pdf.cell(30, 7, format_amount(total), align="R", new_x="LMARGIN", new_y="NEXT")

    pdf.ln(6)
    pdf.set_font("Helvetica", size=10)
    pdf.cell(0, 5, f"Payment Method: {payment_method}", new_x="LMARGIN", new_y="NEXT")

    # footer
    pdf.ln(10)
    pdf.set_font("Helvetica", size=9)
    pdf.set_text_color(*FOOTER_COLOR)
    pdf.cell(0, 5, f"Thank you for shopping with {BRAND}!", align="C", new_x="LMARGIN", new_y="NEXT")

    return pdf


def invoice_bytes(pdf: FPDF) -> bytes:
    return bytes(pdf.output())
