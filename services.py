"""
Domain services: one small class per collection.

Services raise errors.ServiceError subclasses; database failures other than
duplicate keys propagate as pymongo errors and are turned into 500s by the app.
"""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from passlib.context import CryptContext
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings
from database import (
    ADMIN_AUTH, ADMIN_PROFILE, COMPLAINT, FEEDBACK, LOCATION, USER, USER_PROFILE,
    create_document, get_documents, now, ping, serialize, to_object_id,
)
from errors import AuthError, ConflictError, NotFoundError, ServerError, ValidationError
from media import MediaStore
from schemas import (
    COMPLAINT_STATUSES, PROFILE_FIELDS, USER_PROFILE_FIELDS,
    AdminAccount, AdminProfile, Complaint, Feedback, UserAccount, UserProfile,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password!"


def make_password_context(settings: Settings) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)


def _blank_if_none(fields: Dict[str, Any], names) -> Dict[str, Any]:
    return {name: "" if fields.get(name) is None else fields.get(name) for name in names}


# ---------- Admin accounts ----------

class AdminAccounts:
    def __init__(self, db: Database, pwd_context: CryptContext):
        self.db = db
        self.pwd_context = pwd_context

    def register(self, name: Optional[str], email: Optional[str], password: Optional[str]) -> str:
        """Create the login record and an empty profile for a new admin.

        The two inserts are not atomic. If the profile insert fails the account
        is removed again so a retry with the same email is possible.
        """
        if not name or not email or not password:
            raise ValidationError("All fields are required!")

        if self.db[ADMIN_AUTH].find_one({"email": email}):
            raise ConflictError("Admin already exists!")

        account = AdminAccount(name=name, email=email, password=self.pwd_context.hash(password))
        try:
            account_id = create_document(self.db, ADMIN_AUTH, account.model_dump())
        except DuplicateKeyError:
            raise ConflictError("Admin already exists!")

        try:
            create_document(self.db, ADMIN_PROFILE, AdminProfile(email=email).model_dump())
        except PyMongoError:
            logger.exception("Profile creation failed for %s, removing account %s", email, account_id)
            self.db[ADMIN_AUTH].delete_one({"_id": ObjectId(account_id)})
            raise
        return account_id

    def authenticate(self, email: Optional[str], password: Optional[str]) -> str:
        admin = self.db[ADMIN_AUTH].find_one({"email": email}) if email else None
        if not admin or not password:
            raise AuthError(INVALID_CREDENTIALS)
        if not self.pwd_context.verify(password, admin.get("password", "")):
            raise AuthError(INVALID_CREDENTIALS)
        logger.info("Admin %s logged in", email)
        return str(admin["_id"])

    def delete(self, email: str) -> None:
        self.db[ADMIN_PROFILE].delete_one({"email": email})
        self.db[ADMIN_AUTH].delete_one({"email": email})


# ---------- Admin profiles ----------

class AdminProfiles:
    def __init__(self, db: Database):
        self.db = db

    def get(self, email: str) -> Dict[str, Any]:
        doc = self.db[ADMIN_PROFILE].find_one({"email": email})
        if doc is None:
            return AdminProfile(email=email).model_dump()
        return serialize(doc)

    def upsert(self, email: Optional[str], fields: Dict[str, Any]) -> Dict[str, Any]:
        if not email:
            raise ValidationError("Email is required")
        profile = AdminProfile(email=email, **_blank_if_none(fields, PROFILE_FIELDS))
        stamp = now()
        doc = self.db[ADMIN_PROFILE].find_one_and_update(
            {"email": email},
            {"$set": {**profile.model_dump(), "updatedAt": stamp}, "$setOnInsert": {"createdAt": stamp}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return serialize(doc)

    def list_all(self) -> List[Dict[str, Any]]:
        return [serialize(d) for d in get_documents(self.db, ADMIN_PROFILE)]

    def _coordinates(self) -> List[Dict[str, Any]]:
        projection = {"fullName": 1, "latitude": 1, "longitude": 1}
        return [serialize(d) for d in get_documents(self.db, ADMIN_PROFILE, projection=projection)]

    def list_as_locations(self) -> List[Dict[str, Any]]:
        """Admin profiles shaped as map markers."""
        return [
            {
                "id": admin["id"],
                "name": admin.get("fullName"),
                "latitude": admin.get("latitude"),
                "longitude": admin.get("longitude"),
            }
            for admin in self._coordinates()
        ]

    def list_admin_locations(self) -> List[Dict[str, Any]]:
        admins = self._coordinates()
        logger.info("Admin locations: %d", len(admins))
        for admin in admins:
            logger.info("  %s: [%s, %s]", admin.get("fullName"), admin.get("latitude"), admin.get("longitude"))
        return admins


# ---------- User accounts ----------

class UserAccounts:
    def __init__(self, db: Database, settings: Settings, pwd_context: CryptContext):
        self.db = db
        self.settings = settings
        self.pwd_context = pwd_context

    def _require_database(self):
        if not ping(self.db):
            raise ServerError("Database is not connected.")

    def _password_matches(self, password: str, stored: Optional[str]) -> bool:
        if stored is None:
            return False
        if not self.settings.hash_user_passwords:
            return password == stored
        try:
            return self.pwd_context.verify(password, stored)
        except ValueError:
            # stored before hashing was switched on
            return False

    def register(self, name: Optional[str], email: Optional[str], password: Optional[str]) -> str:
        self._require_database()
        if not name or not email or not password:
            raise ValidationError("All fields are required!")

        if self.db[USER].find_one({"email": email}):
            raise ConflictError("User already exists!")

        if self.settings.hash_user_passwords:
            password = self.pwd_context.hash(password)
        try:
            return create_document(self.db, USER, UserAccount(name=name, email=email, password=password).model_dump())
        except DuplicateKeyError:
            raise ConflictError("User already exists!")

    def authenticate(self, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        self._require_database()
        user = self.db[USER].find_one({"email": email}) if email else None
        if not user or password is None or not self._password_matches(password, user.get("password")):
            raise AuthError(INVALID_CREDENTIALS)
        return serialize(user)

    def get_by_id(self, user_id: str) -> Dict[str, Any]:
        oid = to_object_id(user_id)
        user = self.db[USER].find_one({"_id": oid}) if oid else None
        if not user:
            raise NotFoundError("User not found")
        return {"name": user.get("name"), "email": user.get("email")}


# ---------- User profiles ----------

class UserProfiles:
    def __init__(self, db: Database):
        self.db = db

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return serialize(self.db[USER_PROFILE].find_one({"email": email}))

    def get_by_id(self, profile_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(profile_id)
        if oid is None:
            return None
        return serialize(self.db[USER_PROFILE].find_one({"_id": oid}))

    def submit(self, email: Optional[str], fields: Dict[str, Any]) -> str:
        """Create the profile for `email`, or overwrite the existing one in place."""
        if not email:
            raise ValidationError("Email is required")
        profile = UserProfile(email=email, **_blank_if_none(fields, USER_PROFILE_FIELDS)).model_dump()

        existing = self.db[USER_PROFILE].find_one({"email": email}, {"_id": 1})
        if existing:
            self.db[USER_PROFILE].update_one({"_id": existing["_id"]}, {"$set": {**profile, "updatedAt": now()}})
            return str(existing["_id"])
        return create_document(self.db, USER_PROFILE, profile)


# ---------- Locations ----------

class Locations:
    def __init__(self, db: Database):
        self.db = db

    def list_raw(self) -> List[Dict[str, Any]]:
        return [serialize(d) for d in get_documents(self.db, LOCATION)]


# ---------- Complaints ----------

class Complaints:
    def __init__(self, db: Database, media: MediaStore):
        self.db = db
        self.media = media

    def submit(
        self,
        category: Optional[str],
        description: Optional[str],
        date_time: Optional[str],
        admin_id: Optional[str],
        image_name: Optional[str] = None,
        image_content: Optional[bytes] = None,
    ) -> Dict[str, Any]:
        if not admin_id:
            raise ValidationError("Please select an admin.")
        admin_oid = to_object_id(admin_id)
        if admin_oid is None or not self.db[ADMIN_PROFILE].find_one({"_id": admin_oid}, {"_id": 1}):
            raise ValidationError("Selected admin does not exist.")

        image_url = None
        if image_name:
            image_url = self.media.store(image_name, image_content or b"")

        complaint = Complaint(
            category=category,
            description=description,
            dateTime=date_time,
            adminId=str(admin_oid),
            image=image_url,
        )
        data = complaint.model_dump()
        data["adminId"] = admin_oid

        try:
            complaint_id = create_document(self.db, COMPLAINT, data)
        except PyMongoError:
            if image_url:
                logger.error("Complaint insert failed, removing stored image %s", image_url)
                self.media.discard(image_url)
            raise
        logger.info("Complaint %s submitted to admin %s", complaint_id, admin_oid)
        return serialize(self.db[COMPLAINT].find_one({"_id": ObjectId(complaint_id)}))

    def list_all(self) -> List[Dict[str, Any]]:
        return [serialize(d) for d in get_documents(self.db, COMPLAINT)]

    def list_newest_first(self) -> List[Dict[str, Any]]:
        docs = get_documents(self.db, COMPLAINT, sort=[("createdAt", DESCENDING), ("_id", DESCENDING)])
        if not docs:
            raise NotFoundError("No complaints found")
        return [serialize(d) for d in docs]

    def update_status(self, complaint_id: str, status: Optional[str]) -> Dict[str, Any]:
        # Any status may follow any other; only the value itself is checked.
        if status not in COMPLAINT_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(COMPLAINT_STATUSES)}")

        oid = to_object_id(complaint_id)
        doc = None
        if oid is not None:
            doc = self.db[COMPLAINT].find_one_and_update(
                {"_id": oid},
                {"$set": {"status": status, "updatedAt": now()}},
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError("Complaint not found!")
        logger.info("Complaint %s set to %s", complaint_id, status)
        return serialize(doc)


# ---------- Feedback ----------

class FeedbackService:
    def __init__(self, db: Database):
        self.db = db

    def submit(self, rating: Optional[float], feedback: Optional[str]) -> str:
        if rating is None or not feedback:
            raise ValidationError("Rating and feedback are required!")
        return create_document(self.db, FEEDBACK, Feedback(rating=rating, feedback=feedback).model_dump())
