"""
Database Schemas for the Civic Complaints API

Each Pydantic model represents a MongoDB collection. Collection names are
defined in database.py (UserAccount -> "user", AdminProfile -> "admin_profile", ...).
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal

ComplaintStatus = Literal['Pending', 'Accepted', 'Rejected']
COMPLAINT_STATUSES = ('Pending', 'Accepted', 'Rejected')

PROFILE_FIELDS = ('fullName', 'phone', 'role', 'latitude', 'longitude', 'address')
USER_PROFILE_FIELDS = ('fullName', 'phone', 'latitude', 'longitude', 'address')


class UserAccount(BaseModel):
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Login email, unique")
    password: str = Field(..., description="Plaintext unless user hashing is enabled")


class AdminAccount(BaseModel):
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Login email, unique")
    password: str = Field(..., description="bcrypt hash")


class AdminProfile(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    email: str = Field(..., description="Email of the owning AdminAccount")
    fullName: str = Field('')
    phone: str = Field('')
    role: str = Field('')
    latitude: str = Field('')
    longitude: str = Field('')
    address: str = Field('')


class UserProfile(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    email: str = Field(...)
    fullName: str = Field('')
    phone: str = Field('')
    latitude: str = Field('')
    longitude: str = Field('')
    address: str = Field('')


class Complaint(BaseModel):
    category: Optional[str] = Field(None)
    description: Optional[str] = Field(None)
    dateTime: Optional[str] = Field(None, description="Client supplied date/time string")
    adminId: str = Field(..., description="Id of the AdminProfile the complaint is routed to")
    status: ComplaintStatus = Field('Pending')
    image: Optional[str] = Field(None, description="Public URL of the uploaded image")


class Feedback(BaseModel):
    rating: float = Field(...)
    feedback: str = Field(...)
