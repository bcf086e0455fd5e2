"""
Database Schemas for the Bootcamp Directory

MongoDB collections are defined below using Pydantic models. Each class name is
converted to lowercase for the collection name (Bootcamp -> "bootcamp").

We will use these collections:
- bootcamp: bootcamps published by publishers
- course: courses offered by a bootcamp
- review: user reviews of a bootcamp (one per user per bootcamp)
- user: system users (user, publisher, admin)

References between collections (`user`, `bootcamp`) are stored as the
referenced document's _id in string form.
"""

from datetime import datetime
from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Literal

Role = Literal["user", "publisher", "admin"]
Career = Literal["Web Development", "Mobile Development", "UI/UX", "Data Science", "Business", "Other"]
Skill = Literal["beginner", "intermediate", "advanced"]

URL_PATTERN = r"^https?://[\w.-]+(\.[\w.-]+)+[\w\-._~:/?#\[\]@!$&'()*+,;=%]*$"


class Location(BaseModel):
    """GeoJSON point plus the address parts it was resolved from."""
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[longitude, latitude]")
    formatted_address: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    country: Optional[str] = None


class Bootcamp(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1, max_length=500)
    website: Optional[str] = Field(None, pattern=URL_PATTERN)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    address: str = Field(..., min_length=1)
    location: Optional[Location] = None
    careers: List[Career] = Field(..., min_length=1)
    average_rating: Optional[float] = Field(None, ge=1, le=10)
    average_cost: Optional[float] = None
    photo: str = "no-photo.jpg"
    housing: bool = False
    job_assistance: bool = False
    job_guarantee: bool = False
    accept_gi: bool = False
    user: str = Field(..., description="Reference to user _id (owner)")


class Course(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    weeks: str = Field(..., min_length=1, description="Number of weeks")
    tuition: float = Field(..., ge=0)
    minimum_skill: Skill
    scholarship_available: bool = False
    bootcamp: str = Field(..., description="Reference to bootcamp _id")
    user: str = Field(..., description="Reference to user _id (owner)")


class Review(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    text: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=10)
    bootcamp: str = Field(..., description="Reference to bootcamp _id")
    user: str = Field(..., description="Reference to user _id (owner)")


class User(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    role: Role = Field("user")
    password_hash: str = Field(..., description="BCrypt hash of password")
    reset_password_token: Optional[str] = None
    reset_password_expire: Optional[datetime] = None
