"""
Configuration settings for the CloneSet scaling controller.
"""
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    APP_NAME: str = Field(default="cloneset-scaler", description="Application name")
    APP_ENV: str = Field(default="dev", description="Environment: dev|staging|prod")

    # HTTP Configuration
    HTTP_PORT: int = Field(default=8002, description="Service port")

    # Kubernetes Configuration
    K8S_NAMESPACE: str = Field(default="default", description="Kubernetes namespace")
    K8S_CONTEXT: Optional[str] = Field(default=None, description="Kubernetes context")
    K8S_IN_CLUSTER: bool = Field(default=False, description="Running in cluster")

    # CloneSet resource
    CLONESET_GROUP: str = Field(default="apps.kruise.io", description="CloneSet API group")
    CLONESET_VERSION: str = Field(default="v1alpha1", description="CloneSet API version")
    CLONESET_PLURAL: str = Field(default="clonesets", description="CloneSet resource plural")

    # Scaling
    SCALE_INITIAL_BATCH_SIZE: int = Field(default=1, ge=1, description="First batch size of slow-start creation")
    EXPECTATION_TIMEOUT_SECS: int = Field(default=300, ge=0, description="Drop unobserved expectations after this long")
    EVENTS_ENABLED: bool = Field(default=True, description="Write Kubernetes events")

    # Service Configuration
    LOG_LEVEL: str = Field(default="info", description="Log level: info|debug|warning")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
