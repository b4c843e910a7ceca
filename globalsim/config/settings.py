from typing import Literal, Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings

DEFAULT_OTP_SECRET = "fallback-secret"


class Settings(BaseSettings):

    ENV: str = "dev"                    # "dev" / "staging" / "prod"
    SERVICE_NAME: str = "globalsim"
    APP_NAME: str = "GlobalSIM Pro"

    # otp
    OTP_SECRET: str = DEFAULT_OTP_SECRET
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 5
    OTP_MAX_ATTEMPTS: int = 3
    # e.g. "+1"; unset means numbers without a leading "+" are rejected
    PHONE_DEFAULT_COUNTRY_CODE: Optional[str] = None

    # store
    STORE_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_TIMEOUT_SECONDS: float = 0.5

    # rate limits (count, window seconds)
    RATE_LIMIT_FAIL_OPEN: bool = True
    OTP_SEND_LIMIT: int = 5
    OTP_SEND_WINDOW: int = 60
    OTP_VERIFY_LIMIT: int = 10
    OTP_VERIFY_WINDOW: int = 5 * 60
    ESIM_CREATE_LIMIT: int = 10
    ESIM_CREATE_WINDOW: int = 60 * 60
    ESIM_ACTIVATE_LIMIT: int = 20
    ESIM_ACTIVATE_WINDOW: int = 60 * 60

    # sms providers
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    DEMO_SMS_FAILURE_RATE: float = 0.1
    PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # esim providers
    ESIM_PROVIDER_API_KEY: str = ""
    ESIM_PROVIDER_URL: str = "https://api.esim-provider.com"
    ESIM_ACTIVATION_DELAY_SECONDS: float = 1.0
    ESIM_ACTIVATION_FAILURE_RATE: float = 0.1
    ESIM_PROFILE_TTL_DAYS: int = 30

    # ai routing (chat-completion endpoint)
    AI_ROUTING_ENABLED: bool = True
    AI_ROUTING_URL: str = "https://oi-server.onrender.com/chat/completions"
    AI_ROUTING_CUSTOMER_ID: str = ""
    AI_ROUTING_AUTH_TOKEN: str = ""
    AI_ROUTING_MODEL: str = "openrouter/claude-sonnet-4"
    AI_ROUTING_TIMEOUT_SECONDS: float = 5.0
    AI_ROUTING_FAILURE_THRESHOLD: int = 3
    AI_ROUTING_RECOVERY_SECONDS: float = 30.0

    @model_validator(mode="after")
    def check_prod_secrets(self):
        if self.ENV == "prod" and self.OTP_SECRET == DEFAULT_OTP_SECRET:
            raise ValueError("OTP_SECRET must be set in prod")
        return self

    class Config:
        env_file = ".env"
        extra = "ignore"


config_settings = Settings()
