"""
Pydantic schemas for checkout / upgrade flows.
"""
from pydantic import BaseModel

class CheckoutSessionResponse(BaseModel):
    url: str
