from pathlib import Path
from typing import ClassVar, Optional

from pydantic_settings import BaseSettings

# .env next to the project root, optional
env_path = Path(__file__).parent.parent.parent / ".env"


class Settings(BaseSettings):
    """
    Runtime configuration, read from BAZAAR_* environment variables or .env
    """

    API_BASE_URL: str = "http://127.0.0.1:5000"
    REQUEST_TIMEOUT: float = 15.0

    GUEST_CART_PATH: str = "data/guest_cart.sqlite"

    # flat delivery charge applied to non-empty carts
    SHIPPING_FEE: float = 40.0

    DEBUG: bool = False
    LOG_FILE: Optional[str] = None

    class Config:
        env_prefix: ClassVar[str] = "BAZAAR_"
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"


settings = Settings()
