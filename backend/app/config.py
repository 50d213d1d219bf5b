"""
QA Release Tracker - Configuration

Process-wide settings read once from the environment at startup.
Settings are immutable; services receive them by injection and never
re-read the environment per request.
"""
import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

DEFAULT_ROSTER_FILE = Path(__file__).parent / "data" / "team_roster.json"

MIN_SIGNING_KEY_LENGTH = 32


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_roster(path: Path) -> Dict[int, str]:
    """
    Load the sub-team -> tech lead roster.

    File format: {"1": "JIJIN E H", "2": "MURUGESAN P", ...}
    """
    with open(path, encoding="utf-8") as fh:
        raw = json.load(fh)
    roster = {}
    for sub_team, lead_name in raw.items():
        name = str(lead_name).strip()
        if not name:
            raise ValueError(f"Empty tech lead name for sub-team {sub_team} in {path}")
        roster[int(sub_team)] = name
    return roster


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""
    jwt_secret_key: str
    jwt_issuer: str = "QA.API"
    jwt_audience: str = "QA.Portal"
    token_expire_hours: int = 8

    cookie_name: str = "jwtToken"
    cookie_domain: Optional[str] = None
    cors_origins: Tuple[str, ...] = ("https://localhost:7087",)

    credential_strategy: str = "plaintext"
    qa_module_code: str = "QA"
    qa_team_id: int = 6
    team_roster: Dict[int, str] = field(default_factory=dict)
    strict_team_filter: bool = False

    expose_error_detail: bool = False
    operator_api_key: Optional[str] = None

    def __post_init__(self):
        if len(self.jwt_secret_key or "") < MIN_SIGNING_KEY_LENGTH:
            raise ValueError(
                f"JWT secret key must be at least {MIN_SIGNING_KEY_LENGTH} characters long for HS256."
            )
        if self.credential_strategy not in ("plaintext", "bcrypt"):
            raise ValueError(f"Unknown credential strategy: {self.credential_strategy}")


def settings_from_env() -> Settings:
    """Build Settings from environment variables."""
    roster_file = Path(os.getenv("TEAM_ROSTER_FILE", str(DEFAULT_ROSTER_FILE)))
    origins = os.getenv("CORS_ORIGINS", "https://localhost:7087")

    return Settings(
        jwt_secret_key=os.getenv("JWT_SECRET_KEY", "qa-release-tracker-secret-key-change-in-production"),
        jwt_issuer=os.getenv("JWT_ISSUER", "QA.API"),
        jwt_audience=os.getenv("JWT_AUDIENCE", "QA.Portal"),
        token_expire_hours=int(os.getenv("TOKEN_EXPIRE_HOURS", "8")),
        cookie_domain=os.getenv("COOKIE_DOMAIN") or None,
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        credential_strategy=os.getenv("CREDENTIAL_STRATEGY", "plaintext").strip().lower(),
        qa_module_code=os.getenv("QA_MODULE_CODE", "QA"),
        qa_team_id=int(os.getenv("QA_TEAM_ID", "6")),
        team_roster=load_roster(roster_file),
        strict_team_filter=_env_flag("STRICT_TEAM_FILTER"),
        expose_error_detail=_env_flag("EXPOSE_ERROR_DETAIL"),
        operator_api_key=os.getenv("OPERATOR_API_KEY") or None,
    )


@lru_cache()
def get_settings() -> Settings:
    """Dependency for FastAPI - settings are built once per process."""
    return settings_from_env()
