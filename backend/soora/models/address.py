# backend/soora/models/address.py
from pydantic import BaseModel
from typing import Optional

class Address(BaseModel):
    id: Optional[int] = None # None for ad-hoc addresses that are never persisted
    user_id: Optional[int] = None
    street: str
    unit: Optional[str] = None
    postal_code: str
    district: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def display(self) -> str:
        street = f"{self.street} {self.unit}" if self.unit else self.street
        return f"{street}, Singapore {self.postal_code}"

    class Config:
        from_attributes = True
