import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database
from config import Settings
from errors import ServiceError
from media import UPLOADS_ROUTE, MediaStore
from services import (
    AdminAccounts, AdminProfiles, Complaints, FeedbackService, Locations,
    UserAccounts, UserProfiles, make_password_context,
)

logger = logging.getLogger(__name__)


# ---------- Models for requests ----------
class SignupRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AdminProfileUpdate(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    email: Optional[str] = None
    fullName: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    address: Optional[str] = None


class UserProfileSubmit(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    email: Optional[str] = None
    fullName: Optional[str] = None
    phone: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    address: Optional[str] = None


class ComplaintStatusUpdate(BaseModel):
    status: Optional[str] = None


class FeedbackRequest(BaseModel):
    rating: Optional[float] = None
    feedback: Optional[str] = None


# ---------- Dependencies ----------
def get_db(request: Request) -> Database:
    return request.app.state.db


def admin_accounts(request: Request) -> AdminAccounts:
    return AdminAccounts(request.app.state.db, request.app.state.pwd_context)


def admin_profiles(request: Request) -> AdminProfiles:
    return AdminProfiles(request.app.state.db)


def user_accounts(request: Request) -> UserAccounts:
    state = request.app.state
    return UserAccounts(state.db, state.settings, state.pwd_context)


def user_profiles(request: Request) -> UserProfiles:
    return UserProfiles(request.app.state.db)


def locations(request: Request) -> Locations:
    return Locations(request.app.state.db)


def complaints(request: Request) -> Complaints:
    return Complaints(request.app.state.db, request.app.state.media)


def feedback_service(request: Request) -> FeedbackService:
    return FeedbackService(request.app.state.db)


# ---------- Error handlers ----------
def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Server error"})


def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies fall under the same 400 as missing fields.
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        database.ensure_indexes(app.state.db)
    except PyMongoError as e:
        logger.error("MongoDB not reachable at startup: %s", e)
    yield


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    """Build the application. Tests pass their own settings and database."""
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    if db is None:
        db = database.connect(settings)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.pwd_context = make_password_context(settings)
    app.state.media = MediaStore(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.mount(UPLOADS_ROUTE, StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    """Attach every route to `app`.

    Routes are declared inside the factory instead of on a module-level app so
    each app instance carries its own settings and database on `app.state`.
    """

    # ---------- Basic routes ----------
    @app.get("/")
    def root(request: Request):
        return {"message": f"{request.app.state.settings.app_name} running"}

    @app.get("/test")
    def test_database(db: Database = Depends(get_db)):
        info = {
            "backend": "running",
            "database": "disconnected",
            "collections": [],
        }
        try:
            if database.ping(db):
                info["database"] = "connected"
                info["collections"] = db.list_collection_names()[:10]
        except PyMongoError as e:
            info["database"] = f"error: {str(e)[:80]}"
        return info

    # ---------- Admin endpoints ----------
    @app.post("/admin-signup")
    def admin_signup(req: SignupRequest, admins: AdminAccounts = Depends(admin_accounts)):
        admins.register(req.name, req.email, req.password)
        return {"message": "Admin Registered Successfully!"}

    @app.post("/admin-login")
    def admin_login(req: LoginRequest, admins: AdminAccounts = Depends(admin_accounts)):
        admin_id = admins.authenticate(req.email, req.password)
        return {"message": "Admin Login Successful!", "adminId": admin_id}

    @app.get("/get-admin-profile/{email}")
    def get_admin_profile(email: str, profiles: AdminProfiles = Depends(admin_profiles)):
        return {"success": True, "adminProfile": profiles.get(email)}

    @app.post("/update-admin-profile")
    def update_admin_profile(req: AdminProfileUpdate, profiles: AdminProfiles = Depends(admin_profiles)):
        fields = req.model_dump(exclude={"email"})
        profile = profiles.upsert(req.email, fields)
        return {"success": True, "message": "Profile updated successfully", "adminProfile": profile}

    @app.get("/all-admin-profiles")
    def all_admin_profiles(profiles: AdminProfiles = Depends(admin_profiles)):
        return {"success": True, "admins": profiles.list_all()}

    @app.delete("/delete-admin-profile/{email}")
    def delete_admin_profile(email: str, admins: AdminAccounts = Depends(admin_accounts)):
        admins.delete(email)
        return {"success": True, "message": "Admin profile deleted successfully"}

    @app.post("/logout")
    def logout():
        return {"success": True, "message": "Logged out successfully"}

    # ---------- User endpoints ----------
    @app.post("/user-signup")
    def user_signup(req: SignupRequest, users: UserAccounts = Depends(user_accounts)):
        users.register(req.name, req.email, req.password)
        return {"message": "User Registered Successfully!"}

    @app.post("/user-login")
    def user_login(req: LoginRequest, users: UserAccounts = Depends(user_accounts)):
        user = users.authenticate(req.email, req.password)
        return {"message": "Login Successful!", "user": user}

    @app.get("/get-user/{email}")
    def get_user_profile_by_email(email: str, profiles: UserProfiles = Depends(user_profiles)):
        user = profiles.get_by_email(email)
        if user is None:
            return {"success": False, "message": "User not found"}
        return {"success": True, "user": user}

    @app.get("/get-user-account/{user_id}")
    def get_user_account(user_id: str, users: UserAccounts = Depends(user_accounts)):
        return {"success": True, "user": users.get_by_id(user_id)}

    @app.get("/get-user-profile/{profile_id}")
    def get_user_profile_by_id(profile_id: str, profiles: UserProfiles = Depends(user_profiles)):
        user = profiles.get_by_id(profile_id)
        if user is None:
            return {"success": False, "message": "User not found"}
        return {"success": True, "user": user}

    @app.post("/submit-profile")
    def submit_profile(req: UserProfileSubmit, profiles: UserProfiles = Depends(user_profiles)):
        profiles.submit(req.email, req.model_dump(exclude={"email"}))
        return {"success": True, "message": "Profile updated successfully"}

    # ---------- Map endpoints ----------
    @app.get("/api/locations")
    def admin_map_locations(profiles: AdminProfiles = Depends(admin_profiles)):
        return profiles.list_as_locations()

    @app.get("/api/raw-locations")
    def raw_locations(locs: Locations = Depends(locations)):
        return locs.list_raw()

    @app.get("/api/admins")
    def admin_locations(profiles: AdminProfiles = Depends(admin_profiles)):
        return profiles.list_admin_locations()

    # ---------- Complaint endpoints ----------
    @app.post("/submitComplaint", status_code=201)
    def submit_complaint(
        category: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        dateTime: Optional[str] = Form(None),
        adminId: Optional[str] = Form(None),
        image: Optional[UploadFile] = File(None),
        service: Complaints = Depends(complaints),
    ):
        image_name = image_content = None
        if image is not None and image.filename:
            image_name = image.filename
            # one byte past the limit is enough to reject an oversized upload
            image_content = image.file.read(service.media.max_bytes + 1)
        complaint = service.submit(category, description, dateTime, adminId, image_name, image_content)
        return {"message": "Complaint submitted successfully", "complaint": complaint}

    @app.get("/api/complaints")
    def list_complaints(service: Complaints = Depends(complaints)):
        return service.list_all()

    @app.get("/api/complaints/all")
    def list_complaints_newest_first(service: Complaints = Depends(complaints)):
        return service.list_newest_first()

    @app.put("/api/complaints/update/{complaint_id}")
    def update_complaint_status(
        complaint_id: str, body: ComplaintStatusUpdate, service: Complaints = Depends(complaints)
    ):
        updated = service.update_status(complaint_id, body.status)
        return {"message": "Complaint status updated!", "updatedComplaint": updated}

    # ---------- Feedback endpoints ----------
    @app.post("/submitFeedback", status_code=201)
    def submit_feedback(req: FeedbackRequest, service: FeedbackService = Depends(feedback_service)):
        service.submit(req.rating, req.feedback)
        return {"message": "Feedback submitted successfully!"}


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=app.state.settings.port, reload=True)
