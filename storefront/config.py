from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./wankaprint.db"
    SHOP_NAME: str = "WankaPrint"
    SHOP_PHONE: str = "983 555 435"
    SHOP_ADDRESS: str = "Huancayo, Peru"
    CURRENCY_SYMBOL: str = "S/"

    # WhatsApp numbers — orders go to the shop line, contact quotes to sales
    WHATSAPP_NUMBER: str = "51983555435"
    WHATSAPP_QUOTES_NUMBER: str = "51954992500"
    TRACKING_URL: str = "wankaprint.com/rastreo"

    # Pricing
    DELIVERY_FEE: float = 15.00
    DEFAULT_DEPOSIT_PERCENT: float = 60.0
    DEFAULT_QUANTITY: int = 1000
    ORDER_CODE_PREFIX: str = "WK"

    # Auth
    JWT_SECRET: str = ""  # REQUIRED in production — fail loudly if missing at auth time
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_EXPIRE_MINUTES: int = 60
    JWT_REFRESH_EXPIRE_DAYS: int = 30
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""

    # File storage — local uploads/ unless R2 credentials are set
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_MB: int = 20
    R2_ACCOUNT_ID: str = ""
    R2_ACCESS_KEY_ID: str = ""
    R2_SECRET_ACCESS_KEY: str = ""
    R2_BUCKET: str = "wankaprint-files"
    R2_PUBLIC_BASE_URL: str = ""

    class Config:
        env_file = ".env"


settings = Settings()
