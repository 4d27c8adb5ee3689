from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "swucol"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///swucol.db"

    # Card images are cached under images_dir as {Set}{CardNumber}.png
    images_dir: str = "images"
    image_base_url: str = "https://cdn.swu-db.com/images/cards"
    image_fetch_timeout: float = 30.0


settings = Settings()


# =============================================================================
# WISHLIST THRESHOLDS
# =============================================================================

# Copies wanted of a mainboard card (a full playset)
MAINBOARD_MINIMUM = 6

# Copies wanted of leaders and bases
NON_MAINBOARD_MINIMUM = 3


# =============================================================================
# IMAGE DOWNLOAD RATE LIMIT
# =============================================================================

# Max 10 image downloads per second, so wait 100ms between downloads
IMAGE_DOWNLOAD_INTERVAL = 0.1
