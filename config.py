import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ALLOWED_IMAGE_FORMATS = ("jpg", "jpeg", "png")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Process-wide configuration, built once at startup and passed around explicitly."""

    app_name: str = Field("Civic Complaints API")
    mongo_uri: str = Field("mongodb://localhost:27017")
    database_name: str = Field("civic_complaints")

    upload_dir: str = Field("uploads", description="Directory where complaint images are written")
    public_base_url: str = Field("http://localhost:5000", description="Prefix for stored image URLs")
    max_image_bytes: int = Field(5 * 1024 * 1024, gt=0)

    bcrypt_rounds: int = Field(12, ge=4, le=31)
    hash_user_passwords: bool = Field(False, description="Hash user passwords like admin passwords")

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field("INFO")
    port: int = Field(5000)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            app_name=os.getenv("APP_NAME", "Civic Complaints API"),
            mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017"),
            database_name=os.getenv("DATABASE_NAME", "civic_complaints"),
            upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:5000"),
            max_image_bytes=int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024))),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
            hash_user_passwords=_env_bool("HASH_USER_PASSWORDS", False),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=int(os.getenv("PORT", "5000")),
        )
