"""Tests de configuración por variables de entorno."""

import pytest

from taspromto.common.config import (
    DEFAULT_HTTP_PORT,
    DEFAULT_MQTT_PORT,
    ConfigError,
    get_settings,
    parse_name_mapping,
)
from taspromto.core.domain import Namespace

ENV_VARS = (
    "MQTT_HOSTNAME", "MQTT_PORT", "MQTT_USERNAME", "MQTT_PASSWORD",
    "PORT", "MITEMP_NAMES", "RF_TEMP_NAMES", "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # setenv + delenv registra el estado previo: monkeypatch lo restaura
    # aunque load_dotenv escriba en os.environ durante el test.
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("TASPROMTO_ENV_FILE", str(tmp_path / "missing.env"))


class TestParseNameMapping:

    def test_empty(self):
        assert parse_name_mapping(None, Namespace.RF) == {}
        assert parse_name_mapping("  ", Namespace.RF) == {}

    def test_pairs(self):
        raw = "Bresser-3CH:73:1=Front Yard, Acurite:12=Shed"
        assert parse_name_mapping(raw, Namespace.RF) == {
            "Bresser-3CH:73:1": "Front Yard",
            "Acurite:12": "Shed",
        }

    def test_label_may_contain_equals(self):
        assert parse_name_mapping("a:1=x=y", Namespace.RF) == {"a:1": "x=y"}

    def test_trailing_comma_ignored(self):
        assert parse_name_mapping("1D5B3A=Living,", Namespace.MITEMP) == {"1D5B3A": "Living"}

    def test_duplicate_last_wins(self):
        assert parse_name_mapping("a:1=A,a:1=B", Namespace.RF) == {"a:1": "B"}

    def test_pair_without_equals(self):
        with pytest.raises(ConfigError):
            parse_name_mapping("a:1", Namespace.RF)

    def test_mitemp_key_must_be_mac_suffix(self):
        with pytest.raises(ConfigError):
            parse_name_mapping("kitchen=Kitchen", Namespace.MITEMP)


class TestGetSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("MQTT_HOSTNAME", "broker.local")
        settings = get_settings()
        assert settings.mqtt_host == "broker.local"
        assert settings.mqtt_port == DEFAULT_MQTT_PORT
        assert settings.http_port == DEFAULT_HTTP_PORT
        assert settings.mqtt_username is None
        assert settings.client_id.startswith("taspromto-")
        assert settings.log_level == "INFO"
        assert settings.names[Namespace.RF] == {}

    def test_missing_hostname(self):
        with pytest.raises(ConfigError):
            get_settings()

    def test_username_requires_password(self, monkeypatch):
        monkeypatch.setenv("MQTT_HOSTNAME", "broker.local")
        monkeypatch.setenv("MQTT_USERNAME", "user")
        with pytest.raises(ConfigError):
            get_settings()

    def test_credentials(self, monkeypatch):
        monkeypatch.setenv("MQTT_HOSTNAME", "broker.local")
        monkeypatch.setenv("MQTT_USERNAME", "user")
        monkeypatch.setenv("MQTT_PASSWORD", "secret")
        settings = get_settings()
        assert (settings.mqtt_username, settings.mqtt_password) == ("user", "secret")

    @pytest.mark.parametrize("raw", ["abc", "0", "70000"])
    def test_invalid_ports_fall_back(self, monkeypatch, raw):
        monkeypatch.setenv("MQTT_HOSTNAME", "broker.local")
        monkeypatch.setenv("MQTT_PORT", raw)
        monkeypatch.setenv("PORT", raw)
        settings = get_settings()
        assert settings.mqtt_port == DEFAULT_MQTT_PORT
        assert settings.http_port == DEFAULT_HTTP_PORT

    def test_ports(self, monkeypatch):
        monkeypatch.setenv("MQTT_HOSTNAME", "broker.local")
        monkeypatch.setenv("MQTT_PORT", "8883")
        monkeypatch.setenv("PORT", "9100")
        settings = get_settings()
        assert settings.mqtt_port == 8883
        assert settings.http_port == 9100

    def test_name_mappings(self, monkeypatch):
        monkeypatch.setenv("MQTT_HOSTNAME", "broker.local")
        monkeypatch.setenv("MITEMP_NAMES", "1D5B3A=Living Room")
        monkeypatch.setenv("RF_TEMP_NAMES", "Bresser-3CH:73:1=Front Yard")
        settings = get_settings()
        assert settings.names[Namespace.MITEMP] == {"1D5B3A": "Living Room"}
        assert settings.names[Namespace.RF] == {"Bresser-3CH:73:1": "Front Yard"}

    def test_name_mappings_are_read_only(self, monkeypatch):
        monkeypatch.setenv("MQTT_HOSTNAME", "broker.local")
        monkeypatch.setenv("MITEMP_NAMES", "1D5B3A=Living Room")
        settings = get_settings()
        with pytest.raises(TypeError):
            settings.names[Namespace.MITEMP]["1D5B3A"] = "Kitchen"
        with pytest.raises(TypeError):
            settings.names[Namespace.RF] = {}

    def test_env_file_does_not_override_environment(self, monkeypatch, tmp_path):
        env_file = tmp_path / "test.env"
        env_file.write_text("MQTT_HOSTNAME=from-file\nPORT=9200\n")
        monkeypatch.setenv("TASPROMTO_ENV_FILE", str(env_file))
        monkeypatch.setenv("MQTT_HOSTNAME", "from-env")
        settings = get_settings()
        assert settings.mqtt_host == "from-env"
        assert settings.http_port == 9200
