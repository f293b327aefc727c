import pytest

from cdc.config import ConfigError, ConnectorConfig, load_config
from cdc.connection import Connection, ConnectionState


def test_defaults():
    cfg = load_config(env={})

    assert cfg == ConnectorConfig()
    assert cfg.host == "127.0.0.1"
    assert cfg.port == 4001
    assert cfg.user == "maxscale"
    assert cfg.password == ""
    assert cfg.timeout == 10


def test_yaml_top_level_mapping(tmp_path):
    path = tmp_path / "cdc.yaml"
    path.write_text("host: 10.0.0.5\nport: 4002\nuser: repl\npassword: secret\ntimeout: 2.5\n")

    cfg = load_config(path, env={})

    assert cfg == ConnectorConfig(host="10.0.0.5", port=4002, user="repl", password="secret", timeout=2.5)


def test_yaml_cdc_section(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("logging:\n  level: DEBUG\ncdc:\n  host: 10.0.0.6\n  port: \"4003\"\n")

    cfg = load_config(path, env={})

    assert cfg.host == "10.0.0.6"
    assert cfg.port == 4003
    assert cfg.user == "maxscale"


def test_environment_overrides_file(tmp_path):
    path = tmp_path / "cdc.yaml"
    path.write_text("host: 10.0.0.5\nport: 4002\n")

    cfg = load_config(path, env={"CDC_PORT": "5001", "CDC_PASSWORD": "pw", "CDC_HOST": ""})

    assert cfg.host == "10.0.0.5"
    assert cfg.port == 5001
    assert cfg.password == "pw"


def test_keyword_overrides_win_and_none_is_ignored():
    cfg = load_config(env={"CDC_USER": "env-user", "CDC_TIMEOUT": "3"}, user="cli-user", host=None)

    assert cfg.user == "cli-user"
    assert cfg.host == "127.0.0.1"
    assert cfg.timeout == 3.0


@pytest.mark.parametrize(
    "env",
    [
        {"CDC_PORT": "not-a-port"},
        {"CDC_PORT": "70000"},
        {"CDC_TIMEOUT": "0"},
        {"CDC_TIMEOUT": "soon"},
    ],
)
def test_invalid_values_raise_config_error(env):
    with pytest.raises(ConfigError):
        load_config(env=env)


def test_malformed_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("host: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path, env={})


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 127.0.0.1\n- 4001\n")

    with pytest.raises(ConfigError, match="must contain a mapping"):
        load_config(path, env={})


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="Cannot read config file"):
        load_config(tmp_path / "absent.yaml", env={})


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / "cdc.yaml"
    path.write_text("host: 10.0.0.7\nformat: avro\n")

    assert load_config(path, env={}).host == "10.0.0.7"


def test_build_connection_is_not_connected():
    conn = ConnectorConfig(host="10.0.0.8", port=4010, user="u", password="p", timeout=1).build_connection()

    assert isinstance(conn, Connection)
    assert conn.peer == "10.0.0.8:4010"
    assert conn.user == "u"
    assert conn.timeout == 1
    assert conn.state is ConnectionState.NOT_CONNECTED


def test_repr_hides_password():
    assert "hunter2" not in repr(ConnectorConfig(password="hunter2"))
