# backend/soora/repositories/address_repository.py

import mysql.connector
from typing import Optional
from soora.database import get_db_connection # Use centralized database configuration
from soora.models.address import Address

class AddressRepository:
    def _get_db_connection(self):
        """Get database connection using secure configuration"""
        return get_db_connection()

    def get_address(self, address_id: int) -> Optional[Address]:
        conn = self._get_db_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(
                "SELECT id, user_id, street, unit, postal_code, district, latitude, longitude FROM address WHERE id = %s",
                (address_id,),
            )
            row = cursor.fetchone()
            return Address(**row) if row else None
        finally:
            cursor.close()
            conn.close()

    def update_coordinates(self, address_id: int, latitude: float, longitude: float) -> bool:
        """Cache geocoded coordinates so the address is only looked up once."""
        conn = self._get_db_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(
                "UPDATE address SET latitude = %s, longitude = %s WHERE id = %s",
                (latitude, longitude, address_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        except mysql.connector.Error as err:
            conn.rollback()
            raise err
        finally:
            cursor.close()
            conn.close()
