import json
import logging

import pytest

from arraymeta.backend import ShimTransport, TabularTransport
from arraymeta.config import BackendConfig, CacheConfig, Settings, TranslateConfig
from arraymeta.errors import ConfigurationError
from arraymeta.md.cache import MetadataCache
from arraymeta.types import TransportType


def test_defaults() -> None:
    settings = Settings()
    assert settings.backend.host == "localhost"
    assert settings.backend.shim_port == 8083
    assert settings.backend.transport is TransportType.SHIM
    assert settings.cache.refresh_after_sec == 300
    assert settings.translate.timeout_sec == 300


def test_shim_url_follows_ssl_flag() -> None:
    assert BackendConfig(host="db", shim_port=9000).shim_url == "https://db:9000"
    assert BackendConfig(host="db", ssl=False).shim_url == "http://db:8083"


def test_build_shim_transport() -> None:
    config = BackendConfig(host="db", user="u", password="p", read_timeout=3, verify_ssl=False)
    transport = config.build_transport()
    assert isinstance(transport, ShimTransport)
    assert transport.base_url == "https://db:8083"
    assert transport.timeout == (5.0, 3.0)
    assert transport.session.verify is False
    assert transport.auth


def test_tabular_transport_needs_connection_factory() -> None:
    config = BackendConfig(transport="tabular")
    with pytest.raises(ConfigurationError):
        config.build_transport()
    assert isinstance(config.build_transport(connect=lambda: None), TabularTransport)


def test_load_reads_json(tmp_path) -> None:
    path = tmp_path / "arraymeta.json"
    path.write_text(
        json.dumps(
            {
                "backend": {"host": "engine", "ssl": False, "transport": "tabular"},
                "cache": {"refresh_after_sec": 60},
                "translate": {"gdal_path": "/opt/gdal/bin"},
            }
        )
    )
    settings = Settings.load(path)
    assert settings.backend.host == "engine"
    assert settings.backend.transport is TransportType.TABULAR
    assert settings.cache == CacheConfig(refresh_after_sec=60)
    assert settings.translate.executable == "/opt/gdal/bin/gdal_translate"


def test_load_missing_file_uses_defaults(tmp_path, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="arraymeta.config"):
        settings = Settings.load(tmp_path / "nope.json")
    assert settings == Settings()
    assert "not found" in caplog.text


@pytest.mark.parametrize(
    "content",
    ["{not json", json.dumps({"backend": {"port": "many"}}), json.dumps({"cache": {"refresh_after_sec": -1}})],
)
def test_load_invalid_file_raises(tmp_path, content: str) -> None:
    path = tmp_path / "arraymeta.json"
    path.write_text(content)
    with pytest.raises(ConfigurationError):
        Settings.load(path)


def test_build_cache_uses_refresh_window(fake_transport) -> None:
    settings = Settings(cache=CacheConfig(refresh_after_sec=42))
    cache = settings.build_cache(fake_transport)
    assert isinstance(cache, MetadataCache)
    assert cache.refresh_after == 42.0
    assert cache.transport is fake_transport


def test_executable_defaults_to_path_lookup() -> None:
    assert TranslateConfig().executable == "gdal_translate"
