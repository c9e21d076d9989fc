"""
Pydantic schemas for the food diary API.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel

from food_diary.types import Gender, Meal


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    full_name: str
    image_url: Optional[str] = None


class ProfileResponse(BaseModel):
    user_id: str
    full_name: str
    email: str
    gender: Gender
    image_ref: Optional[str] = None
    image_url: Optional[str] = None
    updated_at: float


class FoodEntryResponse(BaseModel):
    id: str
    name: str
    meal: Meal
    log_date: date
    image_ref: Optional[str] = None
    image_url: Optional[str] = None
    created_at: float
    updated_at: float


class FoodListResponse(BaseModel):
    items: list[FoodEntryResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class StatusResponse(BaseModel):
    status: str
