from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    DATABASE_URL: str = ""
    REDIS_URL: str = ""               # empty disables rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30
    STORAGE_BACKEND: str = "memory"   # "memory" | "postgres"
    SECRET_KEY: str = "dev_secret"
    ADMIN_PIN: str = "1234"
    ADMIN_TOKEN_TTL: int = 3600
    DEFAULT_CURRENCY: str = "USD"
    GUEST_STARTING_BALANCE: float = 0
    MINES_EDGE_FACTOR: float = 0.97
    MINES_GRID_SIZE: int = 25
    RECENT_RESULTS_LIMIT: int = 10
    MAX_SESSIONS: int = 10000         # open sessions kept in memory
    SESSION_IDLE_TTL: int = 3600      # seconds before an idle session is dropped
    MAX_RESAMPLE_ATTEMPTS: int = 10000
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def origins_list(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    class Config:
        env_file = ".env"

settings = Settings()
