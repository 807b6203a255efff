from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./mealsnap.db"
    anthropic_api_key: str = ""

    vision_model: str = "claude-sonnet-4-5-20250929"  # Ingredient extraction from photos
    planner_model: str = "claude-sonnet-4-5-20250929"  # Weekly plan + single recipe regeneration

    # Anthropic API timeout settings (seconds)
    anthropic_timeout: int = 120  # A full 7-day plan is a long completion
    anthropic_connect_timeout: int = 10

    # Recipe photo generation (OpenAI Images API)
    openai_api_key: str = ""
    image_model: str = "gpt-image-1"
    image_size: str = "1536x1024"
    image_timeout: int = 90

    # Uploads
    max_upload_size_mb: int = 10
    upload_max_width: int = 1920

    # Preferences
    preferences_key: str = "dietary_preferences"

    # Browser session
    session_cookie_name: str = "mealsnap_session"
    session_max_age: int = 86400  # 1 day
    session_cookie_secure: bool = False  # Set True behind HTTPS

    class Config:
        env_file = ".env"


settings = Settings()
