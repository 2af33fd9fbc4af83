from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    APP_NAME: str = "Router Telemetry Service"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # SSH access to the main router
    ROUTER_SSH_HOST: str = "192.168.1.1"
    ROUTER_SSH_PORT: int = 22
    ROUTER_SSH_USERNAME: str = "admin"
    ROUTER_SSH_PASSWORD: Optional[str] = None
    SSH_CONNECT_TIMEOUT: int = 10
    SSH_COMMAND_TIMEOUT: float = 30.0

    # Router interfaces used by the diagnostic scripts
    LAN_BRIDGE_INTERFACE: str = "br0"
    WAN_INTERFACE: Optional[str] = None
    MESH_NODE_USERNAME: str = "admin"

    # memory | sql
    STORAGE_BACKEND: str = "memory"
    DATABASE_URL: str = "sqlite:///./router_telemetry.db"
    BANDWIDTH_RETENTION: int = 100

    DETAIL_SYNC_BATCH_SIZE: int = 5
    SCHEDULER_TIMEZONE: str = "UTC"
    SYNC_ON_STARTUP: bool = True

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
