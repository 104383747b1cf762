from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="tennisflow/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "TennisFlow Shop API"
    PROJECT_NAME: str = "TennisFlow API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "simple"  # simple | json
    ALLOWED_ORIGINS: List[str] = ["*"]

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = "tennisflow"

    # DATABASE_URL이 있으면 POSTGRES_* 보다 우선한다 (sqlite 테스트 등)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Security
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Transaction retry
    TX_MAX_ATTEMPTS: int = 3
    TX_RETRY_BACKOFF_SECONDS: float = 0.05  # attempt 번호만큼 선형 증가

    # Points policy
    POINT_UNIT: int = 100  # 포인트 사용 단위
    ORDER_EARN_RATE: float = 0.01  # 구매확정 적립률
    REVIEW_REWARD_POINTS: int = 50  # 리뷰 작성 보상

    # Signup bonus campaign
    SIGNUP_BONUS_ENABLED: bool = False
    SIGNUP_BONUS_POINTS: int = 3000
    SIGNUP_BONUS_START: Optional[str] = None  # KST 날짜 (YYYY-MM-DD), 포함
    SIGNUP_BONUS_END: Optional[str] = None  # KST 날짜 (YYYY-MM-DD), 포함
    SIGNUP_BONUS_CAMPAIGN_ID: str = "default"

    # Order pricing
    FREE_SHIPPING_THRESHOLD: int = 30000
    SHIPPING_FEE: int = 3000

    # Timezone
    TIMEZONE: str = "Asia/Seoul"


settings = Settings()
