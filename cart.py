"""
Session-scoped shopping cart.

Lines live in the signed Flask session cookie under ``cart``; nothing is
written to the database until checkout.
"""

SESSION_KEY = "cart"


class CartError(ValueError):
    pass


class Cart:
    """Ordered collection of product lines keyed by product id.

    Quantities are always kept within ``[1, stock_quantity]``.
    """

    def __init__(self, items=None):
        self.items = []
        for item in items or []:
            self.items.append(_normalize_line(item))

    # -- lookups ---------------------------------------------------------

    def _find(self, product_id):
        for item in self.items:
            if item["id"] == product_id:
                return item
        return None

    def __contains__(self, product_id):
        return self._find(product_id) is not None

    def __len__(self):
        return len(self.items)

    # -- mutations -------------------------------------------------------

    def add_item(self, product_id, name, price, stock_quantity, quantity=1, image_url=None):
        """Add a product, or bump the quantity of an existing line."""
        if stock_quantity is None or stock_quantity < 1:
            raise CartError("Product is out of stock")
        line = self._find(product_id)
        if line is not None:
            line["stock_quantity"] = stock_quantity
            line["price"] = price
            line["quantity"] = _clamp(line["quantity"] + quantity, stock_quantity)
            return line
        line = _normalize_line({
            "id": product_id,
            "name": name,
            "price": price,
            "quantity": quantity,
            "stock_quantity": stock_quantity,
            "image_url": image_url,
        })
        self.items.append(line)
        return line

    def remove_item(self, product_id):
        before = len(self.items)
        self.items = [i for i in self.items if i["id"] != product_id]
        return len(self.items) != before

    def update_quantity(self, product_id, quantity):
        line = self._find(product_id)
        if line is None:
            raise KeyError(product_id)
        line["quantity"] = _clamp(quantity, line["stock_quantity"])
        return line

    def adjust_quantity(self, product_id, delta):
        line = self._find(product_id)
        if line is None:
            raise KeyError(product_id)
        return self.update_quantity(product_id, line["quantity"] + delta)

    def clear(self):
        self.items = []

    # -- derived ---------------------------------------------------------

    @property
    def total_items(self):
        return sum(i["quantity"] for i in self.items)

    @property
    def total_price(self):
        return round(sum(i["price"] * i["quantity"] for i in self.items), 2)

    def to_list(self):
        return [dict(i) for i in self.items]

    def to_dict(self):
        return {
            "items": self.to_list(),
            "total_items": self.total_items,
            "total_price": self.total_price,
        }

    # -- session glue ----------------------------------------------------

    @classmethod
    def from_session(cls, session):
        return cls(session.get(SESSION_KEY) or [])

    def save(self, session):
        session[SESSION_KEY] = self.to_list()
        session.modified = True


def _clamp(quantity, stock_quantity):
    quantity = int(quantity)
    ceiling = max(1, int(stock_quantity))
    return max(1, min(quantity, ceiling))


def _normalize_line(item):
    stock = int(item.get("stock_quantity") or 1)
    return {
        "id": item["id"],
        "name": item.get("name", ""),
        "price": float(item.get("price", 0)),
        "quantity": _clamp(item.get("quantity", 1), stock),
        "stock_quantity": stock,
        "image_url": item.get("image_url"),
    }
