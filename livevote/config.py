import os
from datetime import timedelta
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent  # project root (where wsgi.py is)
load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'livevote.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-dev-secret")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        minutes=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_MIN", "30"))
    )
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(
        days=int(os.getenv("JWT_REFRESH_TOKEN_EXPIRES_DAYS", "7"))
    )

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Voting event defaults
    DEFAULT_CANDIDATE_COUNT = int(os.getenv("DEFAULT_CANDIDATE_COUNT", "10"))
    DEFAULT_SELECTION_COUNT = int(os.getenv("DEFAULT_SELECTION_COUNT", "3"))
    WINNER_COUNT = int(os.getenv("WINNER_COUNT", "3"))
    VOTING_DURATION_MINUTES = int(os.getenv("VOTING_DURATION_MINUTES", "20"))
    COUNTDOWN_POLL_SECONDS = int(os.getenv("COUNTDOWN_POLL_SECONDS", "1"))

    # Base URL encoded into each voter's QR code (token appended as ?token=)
    VOTE_BASE_URL = os.getenv("VOTE_BASE_URL", "http://localhost:3000/vote")

    # Live results stream
    RESULTS_DEBOUNCE_SECONDS = float(os.getenv("RESULTS_DEBOUNCE_SECONDS", "0.5"))
    RESULTS_RECONCILE_SECONDS = float(os.getenv("RESULTS_RECONCILE_SECONDS", "15"))

    # Ledger mirror (Base Sepolia by default)
    LEDGER_ENABLED = _env_bool("LEDGER_ENABLED")
    LEDGER_RPC_URL = os.getenv("LEDGER_RPC_URL", "https://sepolia.base.org")
    LEDGER_CHAIN_ID = int(os.getenv("LEDGER_CHAIN_ID", "84532"))
    LEDGER_CONTRACT_ADDRESS = os.getenv("LEDGER_CONTRACT_ADDRESS")
    LEDGER_PRIVATE_KEY = os.getenv("LEDGER_PRIVATE_KEY")
    LEDGER_EXPLORER_URL = os.getenv("LEDGER_EXPLORER_URL", "https://sepolia.basescan.org")
    # Mirroring runs inside the submit request; keep each RPC call short
    LEDGER_RPC_TIMEOUT_SECONDS = float(os.getenv("LEDGER_RPC_TIMEOUT_SECONDS", "5"))

    SWAGGER = {"title": "Live Voting API", "uiversion": 3}


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-32"
    SECRET_KEY = "test-secret"
    LEDGER_ENABLED = False
    RESULTS_DEBOUNCE_SECONDS = 0.0
    RESULTS_RECONCILE_SECONDS = 0.05
