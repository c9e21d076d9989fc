"""
Enumerations shared by the records, schemas and client.
"""

from __future__ import annotations

from enum import Enum


class Meal(str, Enum):
    BREAKFAST = "Breakfast"
    LUNCH = "Lunch"
    DINNER = "Dinner"
    SNACK = "Snack"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNSET = ""
