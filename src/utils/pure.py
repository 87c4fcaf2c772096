import json
from typing import Dict, Iterable, List, Literal, Optional, Tuple

from api.models import CartItem, Order, OrderItem, Product
from utils.logger import get_logger

_logger = get_logger(__name__)

PLACEHOLDER_IMAGE = "https://placehold.co/100x100?text=No+Image"
CURRENCY = "₹"


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of cell values.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table, "" when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [str(h) for h in headers]
    rows = [[str(cell).replace("|", "\\|") for cell in row] for row in rows]

    if aligns is None:
        aligns = ["c"] * len(headers)
    elif len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(align_map[a] for a in aligns) + " |",
    ]
    lines.extend("| " + " | ".join(row) + " |" for row in rows)
    return "\n".join(lines)


def format_price(amount: float) -> str:
    return f"{CURRENCY}{amount:,.2f}"


def product_image_url(product: Product) -> str:
    """
    Best image of a product: the main image, else the first entry of the
    JSON encoded secondary images, else a placeholder.
    """
    if product.image_url:
        return product.image_url
    if product.images:
        try:
            images = json.loads(product.images)
        except ValueError:
            _logger.debug(f"Product {product.id} has unparsable images field")
            # some rows store a single bare URL
            if product.images.strip().startswith("http"):
                return product.images.strip()
        else:
            if isinstance(images, list) and images:
                return str(images[0])
    return PLACEHOLDER_IMAGE


def parse_shipping_details(raw: str) -> Dict[str, str]:
    """Decode an order's shipping JSON; malformed values give an empty dict."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        _logger.warning("Order has malformed shipping details")
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


def cart_summary_markdown(items: Iterable[CartItem], shipping_fee: float) -> Tuple[str, float]:
    """Order summary table of a cart plus its grand total."""
    rows = []
    subtotal = 0.0
    for item in items:
        name = item.product.name if item.product else f"Product {item.product_id}"
        price = item.product.price if item.product else 0.0
        line_total = price * item.quantity
        subtotal += line_total
        rows.append([name, format_price(price), item.quantity, format_price(line_total)])

    total = round(subtotal + (shipping_fee if subtotal > 0 else 0.0), 2)
    md = "### Order Summary\n\n"
    md += generate_markdown_table(
        ["Product Name", "Unit Price", "Quantity", "Total Price"], rows, ["l", "r", "c", "r"]
    )
    md += f"\n\n**Subtotal:** {format_price(subtotal)}  \n"
    md += f"**Shipping:** {format_price(shipping_fee if subtotal > 0 else 0.0)}  \n"
    md += f"**Total:** {format_price(total)}"
    return md, total


def order_detail_markdown(order: Optional[Order], items: List[OrderItem]) -> str:
    if not order:
        return "### Select an order to view its details."

    ship = parse_shipping_details(order.shipping_details)
    parts = (ship.get(k) for k in ("name", "address", "city", "state", "zipCode"))
    ship_to = ", ".join(p for p in parts if p)
    odate = order.date.strftime("%Y-%m-%d %H:%M") if order.date else "-"
    header = (
        f"### Order #{order.id}\n"
        f"Date: {odate}  \n"
        f"Status: {order.status}  \n"
        f"Payment: {order.payment_method.upper()}  \n"
        f"Ship To: {ship_to or '-'}\n\n"
    )

    rows = []
    for line in items:
        name = line.product.name if line.product else f"Product {line.product_id}"
        cat = line.product.category if line.product and line.product.category else "-"
        rows.append(
            [name, cat, line.quantity, format_price(line.price), format_price(line.price * line.quantity)]
        )
    table = generate_markdown_table(
        ["Product", "Category", "Qty", "Unit Price", "Line Total"],
        rows,
        ["l", "l", "r", "r", "r"],
    )
    footer = f"\n\n**Grand Total:** {format_price(order.total)}"
    return header + table + footer
