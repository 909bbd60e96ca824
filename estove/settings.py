from pydantic import BaseModel
import os

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000,https://estove-web.vercel.app"


def _origins() -> list[str]:
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",") if o.strip()]
    frontend = os.getenv("FRONTEND_URL")
    if frontend and frontend not in origins:
        origins.append(frontend)
    return origins


class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./estove.db")
    cors_origins: list[str] = _origins()

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))
    environment: str = os.getenv("ENVIRONMENT", "development")
    public_url: str | None = os.getenv("PUBLIC_URL") or None

    # "0" runs without the command collection (optimistic telemetry only)
    command_queue_enabled: bool = os.getenv("COMMAND_QUEUE_ENABLED", "1") != "0"

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def server_url(self) -> str:
        if self.environment == "production" and self.public_url:
            return self.public_url
        return f"http://localhost:{self.port}"

settings = Settings()
