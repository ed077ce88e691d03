# backend/soora/repositories/order_repository.py

import mysql.connector
from typing import List, Dict, Any, Optional, Iterable, Tuple

from soora.core.exceptions import InsufficientStockError, ProductNotFoundError
from soora.database import get_db_connection # Use centralized database configuration
from soora.models.order import Order, OrderItem, OrderStatus

ORDER_COLUMNS = (
    "id", "order_number", "user_id", "address_id", "status", "payment_status", "payment_method",
    "payment_reference", "subtotal", "delivery_fee", "total", "currency",
    "customer_name", "customer_phone", "customer_email", "delivery_notes",
    "lalamove_order_id", "lalamove_status", "lalamove_tracking_url",
    "lalamove_driver_id", "lalamove_driver_name", "lalamove_driver_phone", "lalamove_driver_plate",
    "estimated_delivery", "delivered_at", "cancel_reason", "created_at", "updated_at",
)

# Columns that update_fields / transition_status may write
UPDATABLE_COLUMNS = {
    "payment_status", "payment_reference", "delivery_notes",
    "lalamove_status", "lalamove_tracking_url",
    "lalamove_driver_id", "lalamove_driver_name", "lalamove_driver_phone", "lalamove_driver_plate",
    "delivered_at", "cancel_reason",
}

ORDER_SELECT = "SELECT " + ", ".join(f"o.{col}" for col in ORDER_COLUMNS) + " FROM `order` o"


def _assignments(fields: Dict[str, Any]) -> Tuple[str, list]:
    unknown = set(fields) - UPDATABLE_COLUMNS
    if unknown:
        raise ValueError(f"Cannot update order columns: {sorted(unknown)}")
    columns = sorted(fields)
    return ", ".join(f"{col} = %s" for col in columns), [fields[col] for col in columns]


class OrderRepository:
    def _get_db_connection(self):
        """Get database connection using secure configuration"""
        return get_db_connection()

    def _fetch_items(self, cursor, order_id: int) -> List[OrderItem]:
        cursor.execute(
            "SELECT id, order_id, product_id, product_name, price, quantity, subtotal FROM order_item WHERE order_id = %s",
            (order_id,),
        )
        return [OrderItem(**row) for row in cursor.fetchall()]

    def _fetch_orders(self, where: str, params: Iterable[Any], suffix: str = "") -> List[Order]:
        conn = self._get_db_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(f"{ORDER_SELECT} {where} {suffix}", tuple(params))
            rows = cursor.fetchall()
            orders = []
            for row in rows:
                row["items"] = self._fetch_items(cursor, row["id"])
                orders.append(Order(**row))
            return orders
        finally:
            cursor.close()
            conn.close()

    # --- Reads ---
    def get_order(self, order_id: int) -> Optional[Order]:
        orders = self._fetch_orders("WHERE o.id = %s", (order_id,))
        return orders[0] if orders else None

    def get_order_by_lalamove_id(self, lalamove_order_id: str) -> Optional[Order]:
        orders = self._fetch_orders("WHERE o.lalamove_order_id = %s", (lalamove_order_id,))
        return orders[0] if orders else None

    def list_orders_for_user(self, user_id: int) -> List[Order]:
        return self._fetch_orders("WHERE o.user_id = %s", (user_id,), "ORDER BY o.created_at DESC")

    def list_orders(self, status: Optional[OrderStatus] = None, limit: int = 20, offset: int = 0) -> List[Order]:
        if status is not None:
            return self._fetch_orders("WHERE o.status = %s", (status.value, limit, offset),
                                      "ORDER BY o.created_at DESC LIMIT %s OFFSET %s")
        return self._fetch_orders("", (limit, offset), "ORDER BY o.created_at DESC LIMIT %s OFFSET %s")

    # --- Checkout ---
    def create_order(self, order_fields: Dict[str, Any], items: List[Dict[str, Any]]) -> Order:
        """Insert the order and its items and take the stock, all in one transaction."""
        conn = self._get_db_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            conn.start_transaction()

            subtotal = 0.0
            line_items = []
            for item in items:
                product_id = item["product_id"]
                quantity = item["quantity"]

                cursor.execute("SELECT id, name, price FROM product WHERE id = %s", (product_id,))
                product = cursor.fetchone()
                if not product:
                    raise ProductNotFoundError(f"Product {product_id} not found")

                # Conditional decrement: never oversells under concurrent checkouts
                cursor.execute(
                    "UPDATE product SET stock_quantity = stock_quantity - %s, sales_count = sales_count + %s "
                    "WHERE id = %s AND stock_quantity >= %s",
                    (quantity, quantity, product_id, quantity),
                )
                if cursor.rowcount != 1:
                    raise InsufficientStockError(f"Insufficient stock for {product['name']}")

                price = float(product["price"])
                line_total = round(price * quantity, 2)
                subtotal += line_total
                line_items.append((product_id, product["name"], price, quantity, line_total))

            subtotal = round(subtotal, 2)
            fields = dict(order_fields)
            fields["subtotal"] = subtotal
            fields["total"] = round(subtotal + float(fields["delivery_fee"]), 2)

            columns = sorted(fields)
            cursor.execute(
                "INSERT INTO `order` (" + ", ".join(columns) + ") VALUES (" + ", ".join(["%s"] * len(columns)) + ")",
                tuple(fields[col] for col in columns),
            )
            order_id = cursor.lastrowid
            if not order_id:
                raise Exception("Failed to create order, no ID returned.")

            cursor.executemany(
                "INSERT INTO order_item (order_id, product_id, product_name, price, quantity, subtotal) "
                "VALUES (%s, %s, %s, %s, %s, %s)",
                [(order_id,) + line for line in line_items],
            )
            conn.commit()
        except Exception: # Roll back stock and partial inserts on any failure
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

        return self.get_order(order_id)

    # --- Field-level writes ---
    def update_fields(self, order_id: int, fields: Dict[str, Any]) -> bool:
        if not fields:
            return False
        assignments, values = _assignments(fields)
        conn = self._get_db_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(
                f"UPDATE `order` SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                tuple(values) + (order_id,),
            )
            conn.commit()
            return cursor.rowcount > 0
        except mysql.connector.Error:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def transition_status(self, order_id: int, from_status: OrderStatus, to_status: OrderStatus,
                          fields: Optional[Dict[str, Any]] = None) -> bool:
        """Compare-and-set on status; False if the order is no longer in ``from_status``."""
        sql = "UPDATE `order` SET status = %s"
        values: list = [to_status.value]
        if fields:
            assignments, extra = _assignments(fields)
            sql += ", " + assignments
            values += extra
        sql += ", updated_at = CURRENT_TIMESTAMP WHERE id = %s AND status = %s"
        values += [order_id, from_status.value]

        conn = self._get_db_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(sql, tuple(values))
            conn.commit()
            return cursor.rowcount == 1
        except mysql.connector.Error:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def record_dispatch(self, order_id: int, lalamove_order_id: str, lalamove_status: str,
                        tracking_url: Optional[str]) -> bool:
        """Attach the Lalamove order once; False if the order already has one."""
        conn = self._get_db_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(
                "UPDATE `order` SET lalamove_order_id = %s, lalamove_status = %s, "
                "lalamove_tracking_url = COALESCE(%s, lalamove_tracking_url), updated_at = CURRENT_TIMESTAMP "
                "WHERE id = %s AND lalamove_order_id IS NULL",
                (lalamove_order_id, lalamove_status, tracking_url, order_id),
            )
            conn.commit()
            return cursor.rowcount == 1
        except mysql.connector.Error:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    # --- Cancellation ---
    def cancel_order(self, order_id: int, reason: str, allowed_statuses: Iterable[OrderStatus]) -> bool:
        """Mark the order CANCELLED and put its stock back.

        The status change is conditional on ``allowed_statuses`` so that a
        second cancellation never restores stock twice.
        """
        allowed = [status.value for status in allowed_statuses]
        if not allowed:
            return False
        conn = self._get_db_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            conn.start_transaction()
            cursor.execute(
                "UPDATE `order` SET status = %s, cancel_reason = %s, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = %s AND status IN (" + ", ".join(["%s"] * len(allowed)) + ")",
                (OrderStatus.CANCELLED.value, reason, order_id, *allowed),
            )
            if cursor.rowcount != 1:
                conn.rollback()
                return False

            cursor.execute("SELECT product_id, quantity FROM order_item WHERE order_id = %s", (order_id,))
            for item in cursor.fetchall():
                cursor.execute(
                    "UPDATE product SET stock_quantity = stock_quantity + %s, "
                    "sales_count = GREATEST(sales_count - %s, 0) WHERE id = %s",
                    (item["quantity"], item["quantity"], item["product_id"]),
                )
            conn.commit()
            return True
        except mysql.connector.Error:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
