from invoice import format_amount, format_invoice_items, generate_invoice, invoice_bytes, invoice_filename
from schemas import CartLine, OrderItem


def test_cart_lines_use_current_price_and_order_lines_captured_price(products):
    cart_line = CartLine(product=products["1"], quantity=2)
    order_line = OrderItem(product=products["1"], quantity=2, price=999)

    assert format_invoice_items([cart_line]) == [
        {"name": "Hydrating Face Serum", "quantity": 2, "price": 1299, "total": 2598},
    ]
    assert format_invoice_items([order_line])[0]["total"] == 1998


def test_invoice_document(products, address):
    items = [OrderItem(product=products["2"], quantity=1, price=1499)]
    pdf = generate_invoice("ORD-0000042", "19 October 2026", items, address, 1499, 0, 1499, "Razorpay")

    assert pdf.title == "Invoice INV-ORD-0000042"
    assert pdf.pages_count == 1
    assert invoice_bytes(pdf).startswith(b"%PDF")


def test_long_orders_flow_onto_more_pages(products, address):
    items = [OrderItem(product=p, quantity=1, price=p.price) for p in products.values()] * 8
    subtotal = sum(i.price for i in items)
    pdf = generate_invoice("ORD-1234567", "1 May 2026", items, address, subtotal, 0, subtotal, "COD")
    assert pdf.pages_count > 1


def test_helpers():
    assert invoice_filename("ORD-0000001") == "invoice-ORD-0000001.pdf"
    assert format_amount(1097) == "Rs. 1,097.00"
