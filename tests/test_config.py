from pathlib import Path

import pytest

from searchchannel.config import (
    Config,
    ConfigError,
    get_env_var,
    is_env_var,
    load_config,
    parse_config,
    parse_inet,
    resolve_env,
    validate_config,
)

SECTIONS = """
[server]
[channel]
[channel.search]
[store]
[store.kv]
[store.kv.pool]
[store.kv.database]
[store.fst]
[store.fst.pool]
[store.fst.graph]
"""


def with_sections(**extra):
    lines = []
    for line in SECTIONS.strip().splitlines():
        lines.append(line)
        section = line.strip("[]")
        if section in extra:
            lines.append(extra[section])
    return "\n".join(lines) + "\n"


def test_checks_environment_variable_patterns():
    assert is_env_var("${env.XXX}")
    assert not is_env_var("${env.XXX")
    assert not is_env_var("${env.XXX}a")
    assert not is_env_var("a${env.XXX}")
    assert not is_env_var("{env.XXX}")
    assert not is_env_var("$env.XXX}")
    assert not is_env_var("${envXXX}")
    assert not is_env_var("${.XXX}")
    assert not is_env_var("${XXX}")


def test_trailing_newline_is_not_an_env_var():
    assert not is_env_var("${env.XXX}\n")


def test_gets_environment_variable(monkeypatch):
    monkeypatch.setenv("TEST", "test")
    assert get_env_var("${env.TEST}") == "test"


def test_missing_environment_variable_raises(monkeypatch):
    monkeypatch.delenv("SURELY_NOT_SET_VARIABLE", raising=False)
    with pytest.raises(ConfigError):
        get_env_var("${env.SURELY_NOT_SET_VARIABLE}")


def test_resolve_env_passes_plain_values(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL_VALUE", "debug")
    assert resolve_env("info") == "info"
    assert resolve_env("${env.LOG_LEVEL_VALUE}") == "debug"


def test_parse_inet_ipv6():
    assert parse_inet("[::1]:1491") == ("::1", 1491)


def test_parse_inet_ipv4():
    assert parse_inet("0.0.0.0:1491") == ("0.0.0.0", 1491)


@pytest.mark.parametrize(
    "value",
    ["::1:1491", "[127.0.0.1]:1491", "localhost:1491", "0.0.0.0", "0.0.0.0:99999", "0.0.0.0:x"],
)
def test_parse_inet_rejects_invalid(value):
    with pytest.raises(ConfigError):
        parse_inet(value)


def test_defaults_from_empty_sections():
    config = parse_config(SECTIONS)
    assert config == Config()
    assert config.server.log_level == "error"
    assert config.channel.inet == ("::1", 1491)
    assert config.channel.tcp_timeout == 300
    assert config.channel.auth_password is None
    assert config.channel.search.query_limit_default == 10
    assert config.channel.search.query_limit_maximum == 100
    assert config.channel.search.query_alternates_try == 4
    assert config.channel.search.suggest_limit_default == 5
    assert config.channel.search.suggest_limit_maximum == 20
    assert config.store.kv.path == Path("./data/store/kv/")
    assert config.store.kv.retain_word_objects == 1000
    assert config.store.kv.pool.inactive_after == 1800
    assert config.store.kv.database.flush_after == 900
    assert config.store.kv.database.compress is True
    assert config.store.kv.database.parallelism == 2
    assert config.store.kv.database.max_files is None
    assert config.store.kv.database.max_compactions == 1
    assert config.store.kv.database.max_flushes == 1
    assert config.store.kv.database.write_buffer == 16384
    assert config.store.kv.database.write_ahead_log is True
    assert config.store.fst.path == Path("./data/store/fst/")
    assert config.store.fst.pool.inactive_after == 300
    assert config.store.fst.graph.consolidate_after == 180
    assert config.store.fst.graph.max_size == 2048
    assert config.store.fst.graph.max_words == 250000


def test_explicit_values_override_defaults():
    config = parse_config(
        with_sections(
            server='log_level = "debug"',
            channel='inet = "0.0.0.0:1491"\nauth_password = "password"',
            **{"channel.search": "query_limit_default = 25", "store.kv.database": "max_files = 100"},
        )
    )
    assert config.server.log_level == "debug"
    assert config.channel.inet == ("0.0.0.0", 1491)
    assert config.channel.auth_password == "password"
    assert config.channel.search.query_limit_default == 25
    assert config.store.kv.database.max_files == 100


def test_environment_values_are_substituted(monkeypatch, tmp_path):
    monkeypatch.setenv("CHANNEL_PASSWORD", "secret")
    monkeypatch.setenv("KV_PATH", str(tmp_path))
    config = parse_config(
        with_sections(
            channel='auth_password = "${env.CHANNEL_PASSWORD}"',
            **{"store.kv": 'path = "${env.KV_PATH}"'},
        )
    )
    assert config.channel.auth_password == "secret"
    assert config.store.kv.path == tmp_path


def test_missing_section_raises():
    text = SECTIONS.replace("[server]\n", "")
    with pytest.raises(ConfigError):
        parse_config(text)


def test_out_of_range_integer_raises():
    with pytest.raises(ConfigError):
        parse_config(with_sections(**{"channel.search": "query_limit_default = 70000"}))


def test_wrong_type_raises():
    with pytest.raises(ConfigError):
        parse_config(with_sections(**{"store.kv.database": 'compress = "yes"'}))


def test_syntax_error_raises():
    with pytest.raises(ConfigError):
        parse_config("[server\n")


def test_zero_write_buffer_rejected():
    with pytest.raises(ConfigError, match="write_buffer"):
        parse_config(with_sections(**{"store.kv.database": "write_buffer = 0"}))


def test_flush_after_must_be_lower_than_inactive_after():
    with pytest.raises(ConfigError, match="flush_after"):
        parse_config(
            with_sections(
                **{"store.kv.pool": "inactive_after = 900", "store.kv.database": "flush_after = 900"}
            )
        )


def test_consolidate_after_must_be_lower_than_inactive_after():
    with pytest.raises(ConfigError, match="consolidate_after"):
        parse_config(with_sections(**{"store.fst.graph": "consolidate_after = 300"}))


def test_validate_accepts_defaults():
    config = Config()
    validate_config(config)
    assert config.store.kv.database.write_buffer > 0


def test_load_config_reads_file(tmp_path):
    config_path = tmp_path / "config.cfg"
    config_path.write_text(with_sections(server='log_level = "info"'), encoding="utf-8")
    assert load_config(config_path).server.log_level == "info"


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.cfg")