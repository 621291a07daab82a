"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database path settings."""
    
    model_config = SettingsConfigDict(env_prefix="DB_")
    
    tree_db_path: str = "data/family_tree.db"
    invitations_db_path: str = "data/invitations.db"


class LayoutSettings(BaseSettings):
    """Placement of newly created nodes on the canvas."""
    
    model_config = SettingsConfigDict(env_prefix="LAYOUT_")
    
    baseline_x: float = 0.0
    baseline_y: float = 0.0
    spouse_gap: float = 180.0
    vertical_gap: float = 200.0
    horizontal_gap: float = 250.0


class PersistenceSettings(BaseSettings):
    """Durable write behaviour."""
    
    model_config = SettingsConfigDict(env_prefix="PERSIST_")
    
    position_debounce_seconds: float = 0.3


class LimitSettings(BaseSettings):
    """Relationship limits per member."""
    
    model_config = SettingsConfigDict(env_prefix="LIMIT_")
    
    max_spouses: int = 1
    max_fathers: int = 1
    max_mothers: int = 1
    max_children: int = 8


class MergeSettings(BaseSettings):
    """Tree merge behaviour."""
    
    model_config = SettingsConfigDict(env_prefix="MERGE_")
    
    children_step_delay_seconds: float = 0.5
    suggestion_threshold: int = 30


class Settings(BaseSettings):
    """Main application settings."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
    
    log_level: str = "INFO"
    
    database: DatabaseSettings = DatabaseSettings()
    layout: LayoutSettings = LayoutSettings()
    persistence: PersistenceSettings = PersistenceSettings()
    limits: LimitSettings = LimitSettings()
    merge: MergeSettings = MergeSettings()


settings = Settings()
