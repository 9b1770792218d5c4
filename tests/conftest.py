"""Shared fixtures: populated in-memory schemas for end-to-end scenarios."""

import pytest

from fake_mysql import FakeMySQL

ACCOUNTS_ROWS = [
    (1, "ada@example.com", "Ada"),
    (2, "o'brien@example.com", "O'Brien"),
    (3, "back\\slash@example.com", None),
]


@pytest.fixture
def accounts_source() -> FakeMySQL:
    """The accounts schema: one table (3 rows) and one view over it."""
    source = FakeMySQL("app")
    source.add_table("accounts", ["id", "email", "name"], ACCOUNTS_ROWS)
    source.add_object(
        "view",
        "active_accounts",
        "CREATE ALGORITHM=UNDEFINED DEFINER=`root`@`localhost` SQL SECURITY DEFINER "
        "VIEW `active_accounts` AS select `app`.`accounts`.`id` AS `id` "
        "from `app`.`accounts`",
    )
    return source


@pytest.fixture
def shop_source() -> FakeMySQL:
    """Two related tables plus a view, a procedure and a trigger."""
    source = FakeMySQL("shop")
    source.add_table(
        "customers",
        ["id", "name"],
        [(i, f"customer {i}") for i in range(1, 6)],
    )
    source.add_table(
        "orders",
        ["id", "customer_id", "total"],
        [(i, (i % 5) + 1, f"{i}.50") for i in range(1, 251)],
        extra="CONSTRAINT `fk_customer` FOREIGN KEY (`customer_id`) REFERENCES `customers` (`id`)",
    )
    source.add_object(
        "view",
        "order_totals",
        "CREATE VIEW `order_totals` AS select `customer_id`, sum(`total`) from `shop`.`orders` "
        "group by `customer_id`",
    )
    source.add_object(
        "procedure",
        "purge_orders",
        "CREATE DEFINER=`admin`@`%` PROCEDURE `purge_orders`()\n"
        "BEGIN\n  DELETE FROM orders WHERE total = 0;\n  SELECT 'done; really';\nEND",
    )
    source.add_object(
        "trigger",
        "orders_bi",
        "CREATE DEFINER=`admin`@`%` TRIGGER `orders_bi` BEFORE INSERT ON `orders` "
        "FOR EACH ROW BEGIN\n  SET NEW.total = IFNULL(NEW.total, 0);\nEND",
        table="orders",
    )
    return source
