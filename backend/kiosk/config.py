# backend/kiosk/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kiosk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///kiosk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Kiosk identity (sent to the POS with every order)
    KIOSK_ID = os.environ.get("KIOSK_ID", "KIOSK-001")
    KIOSK_LOCATION = os.environ.get("KIOSK_LOCATION", "Main Store")

    # External POS API
    POS_API_URL = os.environ.get("POS_API_URL", "http://localhost:3001")
    KIOSK_API_KEY = os.environ.get("KIOSK_API_KEY", "")

    # NOWPayments crypto gateway
    NOWPAYMENTS_API_URL = os.environ.get("NOWPAYMENTS_API_URL", "https://api.nowpayments.io/v1")
    NOWPAYMENTS_API_KEY = os.environ.get("NOWPAYMENTS_API_KEY", "")
    NOWPAYMENTS_IPN_SECRET = os.environ.get("NOWPAYMENTS_IPN_SECRET", "")
    CRYPTO_IPN_CALLBACK_URL = os.environ.get("CRYPTO_IPN_CALLBACK_URL", "")
    CRYPTO_POLL_INTERVAL_SECONDS = _env_int("CRYPTO_POLL_INTERVAL_SECONDS", 5)

    HTTP_TIMEOUT_SECONDS = _env_int("HTTP_TIMEOUT_SECONDS", 10)
    # httpx transports; tests install httpx.MockTransport here
    NOWPAYMENTS_TRANSPORT = None
    POS_TRANSPORT = None
    ASSET_TRANSPORT = None

    # Kiosk session timers (seconds)
    SESSION_IDLE_SECONDS = _env_int("SESSION_IDLE_SECONDS", 60)
    SESSION_WARNING_SECONDS = _env_int("SESSION_WARNING_SECONDS", 60)
    JOINT_BUILDER_IDLE_SECONDS = _env_int("JOINT_BUILDER_IDLE_SECONDS", 300)

    # Loyalty: value of one point in cents (100 = 1 baht)
    POINT_VALUE_CENTS = _env_int("POINT_VALUE_CENTS", 100)
    DEFAULT_TRANSACTION_PREFIX = os.environ.get("DEFAULT_TRANSACTION_PREFIX", "TRX")

    # Local blob storage and asset caches
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")
    ASSET_CACHE_FOLDER = os.environ.get("ASSET_CACHE_FOLDER", "asset_cache")

    CORS_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    ]
