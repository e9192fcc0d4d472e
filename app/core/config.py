from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./ecohunt.db"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://ecohunt.app,https://api.ecohunt.app"
    CORS_ORIGINS: str = "*"

    # --- Tokenomics (GREEN tokens) ---
    BASE_TOKEN_REWARD: float = 10.0
    MAX_DAILY_REWARD: float = 100.0
    FALLBACK_TOKEN_AMOUNT: float = 5.0

    # "additive" sums the raw seasonal multiplier as one more reward term;
    # "multiplicative" scales the subtotal of the other seven terms.
    SEASONAL_MODE: str = "additive"

    # "degrade" zeroes a failing photo sub-check; "abort" fails the whole verification.
    SUBCHECK_FAILURE_POLICY: str = "degrade"

    # --- Pipeline ---
    # Bounds the reward decision (steps 0-6); issuance is bounded separately.
    SUBMISSION_TIMEOUT_SECONDS: float = 30.0
    ISSUANCE_TIMEOUT_SECONDS: float = 20.0
    BATCH_MAX_ITEMS: int = 100
    BATCH_CONCURRENCY: int = 10

    # --- Reward issuance ---
    TOKEN_CONTRACT: str = "0xd32F38d4bda39069066D3c9DeCF0d86D351DAD9d"
    REWARD_NETWORK: str = "base"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
