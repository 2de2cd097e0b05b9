import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///shadowpaths.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    API_KEY = os.getenv("SHADOWPATHS_API_KEY", "")

    # authorCurrency credited for a first ending found in a user-authored story
    READ_REWARD = int(os.getenv("SHADOWPATHS_READ_REWARD", "5"))

    UPLOAD_FOLDER = os.getenv("SHADOWPATHS_UPLOAD_FOLDER", "")  # empty: <instance>/uploads
    UPLOAD_URL_PREFIX = "/uploads"
    ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024
