"""Configuration helpers for constructing transports and the metadata cache."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .backend import MetadataTransport, get_transport
from .errors import ConfigurationError
from .md.cache import DEFAULT_REFRESH_AFTER_SEC, MetadataCache
from .types import TransportType

logger = logging.getLogger(__name__)


class BackendConfig(BaseModel):
    """Connection settings of the array engine."""

    host: str = Field(default="localhost", description="Engine host name")
    port: int = Field(default=1239, description="Port of the tabular query channel")
    shim_port: int = Field(default=8083, description="Port of the HTTP shim")
    user: Optional[str] = Field(default="scidb", description="Engine user")
    password: Optional[str] = Field(default="scidb", description="Engine password")
    ssl: bool = Field(default=True, description="Use HTTPS for the shim")
    transport: TransportType = Field(
        default=TransportType.SHIM, description="Transport used for metadata queries"
    )
    connect_timeout: float = Field(default=5.0, gt=0, description="Connect timeout in seconds")
    read_timeout: float = Field(default=10.0, gt=0, description="Read timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify the shim's TLS certificate")

    @property
    def shim_url(self) -> str:
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.host}:{self.shim_port}"

    def transport_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments used when instantiating the transport."""

        if self.transport == TransportType.SHIM:
            return {
                "base_url": self.shim_url,
                "user": self.user,
                "password": self.password,
                "connect_timeout": self.connect_timeout,
                "read_timeout": self.read_timeout,
                "verify": self.verify_ssl,
            }
        return {}

    def build_transport(self, connect: Optional[Callable[[], Any]] = None) -> MetadataTransport:
        """
        Create the configured transport.

        Args:
            connect: Connection factory, required by the tabular transport

        Raises:
            ConfigurationError: If the tabular transport is selected without
                a connection factory
        """
        kwargs = self.transport_kwargs()
        if self.transport == TransportType.TABULAR:
            if connect is None:
                raise ConfigurationError("The tabular transport needs a connection factory")
            kwargs["connect"] = connect
        return get_transport(self.transport, **kwargs)


class CacheConfig(BaseModel):
    refresh_after_sec: float = Field(
        default=DEFAULT_REFRESH_AFTER_SEC,
        ge=0,
        description="Age in seconds after which cached metadata is refetched",
    )


class TranslateConfig(BaseModel):
    """Settings of the external raster-extraction tool."""

    gdal_path: str = Field(default="", description="Directory holding gdal_translate")
    temp_path: str = Field(default="/tmp", description="Directory for produced files")
    timeout_sec: int = Field(default=300, gt=0, description="Maximum run time of the tool")

    @property
    def executable(self) -> str:
        if not self.gdal_path:
            return "gdal_translate"
        return str(Path(self.gdal_path) / "gdal_translate")


class Settings(BaseModel):
    """All settings of a metadata service process."""

    backend: BackendConfig = Field(default_factory=BackendConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    translate: TranslateConfig = Field(default_factory=TranslateConfig)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Settings":
        """
        Read settings from a JSON file.

        A missing file yields the defaults.

        Raises:
            ConfigurationError: If the file cannot be read or holds invalid settings
        """
        path = Path(path)
        if not path.exists():
            logger.warning("Config file %s not found, using defaults", path)
            return cls()
        try:
            return cls.model_validate_json(path.read_text(encoding="utf-8"))
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid config file {path}: {exc}", exc) from exc
        except OSError as exc:
            raise ConfigurationError(f"Cannot read config file {path}: {exc}", exc) from exc

    def build_cache(
        self,
        transport: Optional[MetadataTransport] = None,
        connect: Optional[Callable[[], Any]] = None,
    ) -> MetadataCache:
        """Create the shared metadata cache, building the transport if not given."""

        if transport is None:
            transport = self.backend.build_transport(connect)
        return MetadataCache(transport, refresh_after=self.cache.refresh_after_sec)
