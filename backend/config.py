from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"  # development | test | production
    APP_NAME: str = "Missed Prayers Tracker"
    SECRET_KEY: str = "change-me-in-production"
    DATABASE_URL: str = "sqlite:///data/prayers.db"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = 168
    AUTH_COOKIE_NAME: str = "prayers_session"
    AUTH_COOKIE_SECURE: bool = False
    AUTH_COOKIE_HTTPONLY: bool = True
    AUTH_COOKIE_SAMESITE: str = "lax"  # strict | lax | none
    AUTH_COOKIE_DOMAIN: str | None = None
    AUTH_COOKIE_PATH: str = "/"

    LOG_LEVEL: str = "INFO"
    SECURITY_HEADERS_ENABLED: bool = True
    SECURITY_CSP: str = "default-src 'none'; frame-ancestors 'none'; base-uri 'none';"

    RATE_LIMIT_AUTH_LOGIN_ATTEMPTS: int = 10
    RATE_LIMIT_AUTH_LOGIN_WINDOW_SECONDS: int = 300
    RATE_LIMIT_AUTH_REGISTER_ATTEMPTS: int = 5
    RATE_LIMIT_AUTH_REGISTER_WINDOW_SECONDS: int = 600

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_production(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"production", "prod"}

    def security_problems(self) -> list[str]:
        """Settings that are unsafe to serve real users with. Empty outside production."""
        if not self.is_production:
            return []
        problems = []
        secret = (self.SECRET_KEY or "").strip()
        if secret == "change-me-in-production" or len(secret) < 32:
            problems.append("SECRET_KEY must be replaced with a random value of at least 32 characters")
        if not self.AUTH_COOKIE_SECURE:
            problems.append("AUTH_COOKIE_SECURE must be true")
        return problems

    def validate_security_configuration(self) -> None:
        problems = self.security_problems()
        if problems:
            raise RuntimeError("Insecure production configuration: " + "; ".join(problems))


settings = Settings()
