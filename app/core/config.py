from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Document Search API"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    DATA_DIR: str = "./data"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Azure AI Search (required)
    SEARCH_ENDPOINT: str
    SEARCH_INDEX_NAME: str
    SEARCH_ADMIN_KEY: str

    # Extraction service and blob storage (required, validated at startup)
    EXTRACTION_ENDPOINT: str
    EXTRACTION_KEY: str
    BLOB_STORAGE_CONNECTION_STRING: str

    # Upload config
    MAX_UPLOAD_MB: int = 25
    ALLOWED_EXTENSIONS: tuple[str, ...] = (".pdf",)
    VERIFY_PDF_MAGIC: bool = True
    UPLOAD_RETENTION_HOURS: int = 24  # 0 disables the startup sweep

    # Extract text from PDF
    MAX_PDF_PAGES: int = 500
    FILE_TYPE_TAG: str = "PDF"

    # Index schema
    CONTENT_ANALYZER: str = "en.lucene"

    # Search
    SEARCH_SEMANTIC_ENABLED: bool = True
    SEARCH_SEMANTIC_CONFIGURATION: str = "default"
    SEARCH_MAX_TOP: int = 50


settings = Settings()
