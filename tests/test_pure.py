import json
import unittest
from datetime import datetime, timezone

from api.models import CartItem, Order, OrderItem, Product
from utils.pure import (
    PLACEHOLDER_IMAGE,
    cart_summary_markdown,
    format_price,
    generate_markdown_table,
    order_detail_markdown,
    parse_shipping_details,
    product_image_url,
)
from views.scr_admin_orders import orders_report_markdown


def product(**overrides) -> Product:
    values = dict(id=1, name="Kurta", price=500.0, stock=10, category="clothing")
    values.update(overrides)
    return Product(**values)


def order(oid, total, date, status="pending", user_id=1, shipping=None) -> Order:
    return Order(
        id=oid,
        user_id=user_id,
        status=status,
        total=total,
        date=date,
        shipping_details=json.dumps(shipping or {"name": "Asha"}),
    )


class MarkdownTableTestCase(unittest.TestCase):
    def test_table_with_headers(self):
        md = generate_markdown_table(["A", "B"], [[1, "x|y"]], ["l", "r"])
        self.assertEqual(md, "| A | B |\n| :--- | ---: |\n| 1 | x\\|y |")

    def test_first_row_as_headers(self):
        md = generate_markdown_table(None, [["A", "B"], ["1", "2"]])
        self.assertEqual(md.splitlines()[0], "| A | B |")
        self.assertEqual(md.splitlines()[1], "| :---: | :---: |")

    def test_no_rows(self):
        self.assertEqual(generate_markdown_table(["A"], []), "")

    def test_aligns_must_match(self):
        with self.assertRaises(ValueError):
            generate_markdown_table(["A", "B"], [["1", "2"]], ["l"])


class ProductImageTestCase(unittest.TestCase):
    def test_main_image_wins(self):
        p = product(image_url="https://img/main.png", images='["https://img/2.png"]')
        self.assertEqual(product_image_url(p), "https://img/main.png")

    def test_first_secondary_image(self):
        self.assertEqual(
            product_image_url(product(images='["https://img/2.png", "https://img/3.png"]')),
            "https://img/2.png",
        )

    def test_bare_url_and_fallbacks(self):
        self.assertEqual(product_image_url(product(images=" https://img/raw.png ")), "https://img/raw.png")
        self.assertEqual(product_image_url(product(images="not json")), PLACEHOLDER_IMAGE)
        self.assertEqual(product_image_url(product(images="[]")), PLACEHOLDER_IMAGE)
        self.assertEqual(product_image_url(product()), PLACEHOLDER_IMAGE)


class ShippingDetailsTestCase(unittest.TestCase):
    def test_parse(self):
        raw = json.dumps({"name": "Asha", "zipCode": 560001, "notes": None})
        self.assertEqual(
            parse_shipping_details(raw), {"name": "Asha", "zipCode": "560001", "notes": ""}
        )

    def test_malformed(self):
        self.assertEqual(parse_shipping_details(""), {})
        self.assertEqual(parse_shipping_details("{broken"), {})
        self.assertEqual(parse_shipping_details("[1, 2]"), {})


class SummaryTestCase(unittest.TestCase):
    def test_cart_summary(self):
        items = [
            CartItem(id=1, product_id=1, quantity=2, product=product()),
            CartItem(id=2, product_id=9, quantity=1),
        ]
        md, total = cart_summary_markdown(items, 40.0)
        self.assertEqual(total, 1040.0)
        self.assertIn("| Kurta | ₹500.00 | 2 | ₹1,000.00 |", md)
        self.assertIn("Product 9", md)
        self.assertIn("**Total:** ₹1,040.00", md)

    def test_empty_cart_has_no_shipping(self):
        md, total = cart_summary_markdown([], 40.0)
        self.assertEqual(total, 0.0)
        self.assertIn("**Shipping:** ₹0.00", md)

    def test_order_detail(self):
        self.assertEqual(order_detail_markdown(None, []), "### Select an order to view its details.")

        o = order(
            7,
            1040.0,
            datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc),
            shipping={"name": "Asha", "city": "Bengaluru", "zipCode": "560001"},
        )
        lines = [OrderItem(id=1, order_id=7, product_id=1, quantity=2, price=500.0, product=product())]
        md = order_detail_markdown(o, lines)
        self.assertIn("### Order #7", md)
        self.assertIn("Date: 2024-05-01 10:30", md)
        self.assertIn("Payment: COD", md)
        self.assertIn("Ship To: Asha, Bengaluru, 560001", md)
        self.assertIn("| Kurta | clothing | 2 | ₹500.00 | ₹1,000.00 |", md)
        self.assertIn("**Grand Total:** ₹1,040.00", md)

    def test_format_price(self):
        self.assertEqual(format_price(1234567.891), "₹1,234,567.89")


class OrdersReportTestCase(unittest.TestCase):
    def test_weekly_summary_and_status_counts(self):
        now = datetime(2024, 5, 10, tzinfo=timezone.utc)
        orders = [
            order(3, 300.0, datetime(2024, 5, 9, tzinfo=timezone.utc), user_id=1),
            order(2, 100.0, datetime(2024, 5, 8, tzinfo=timezone.utc), status="delivered", user_id=2),
            order(1, 900.0, datetime(2024, 4, 1, tzinfo=timezone.utc), status="delivered", user_id=1),
        ]
        md = orders_report_markdown(orders, now)
        self.assertIn("- Orders: 2", md)
        self.assertIn("- Distinct Customers: 2", md)
        self.assertIn("- Avg Amount per Customer: ₹200.00", md)
        self.assertIn("- Total Sales Amount: ₹400.00", md)
        self.assertIn("| delivered | 2 |", md)
        self.assertIn("| pending | 1 |", md)
        self.assertIn("| 3 | 2024-05-09 00:00 | Asha | pending | COD | ₹300.00 |", md)

    def test_no_orders(self):
        md = orders_report_markdown([], datetime(2024, 5, 10, tzinfo=timezone.utc))
        self.assertIn("- Orders: 0", md)
        self.assertEqual(md.count("No orders yet."), 2)
