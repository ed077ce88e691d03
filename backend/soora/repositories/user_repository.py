# backend/soora/repositories/user_repository.py

from typing import Dict, Any, Optional
from soora.database import get_db_connection # Use centralized database configuration

USER_COLUMNS = "id, email, name, phone, password_hash, is_active, is_admin, created_at"

class UserRepository:
    def _get_db_connection(self):
        """Get database connection using secure configuration"""
        return get_db_connection()

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        conn = self._get_db_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(f"SELECT {USER_COLUMNS} FROM `user` WHERE email = %s", (email,))
            return cursor.fetchone()
        finally:
            cursor.close()
            conn.close()

    def get_user_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        conn = self._get_db_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(f"SELECT {USER_COLUMNS} FROM `user` WHERE id = %s", (user_id,))
            return cursor.fetchone()
        finally:
            cursor.close()
            conn.close()
