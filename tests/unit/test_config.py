"""
Unit tests for lanchat.config module.

Tests default values, TOML loading, environment overrides and the
conversion to runtime settings.
"""

import pytest

from lanchat.ciphers import EncryptionMode
from lanchat.config import DEFAULT_CONFIG, Config
from lanchat.constants import DEFAULT_ENCRYPTION_KEY, DEFAULT_PORT
from lanchat.errors import ConfigError, ErrorCode


class TestDefaults:
    def test_defaults_without_file(self, temp_dir, clean_env):
        config = Config(temp_dir / "missing.toml")
        assert config.get("network", "port") == DEFAULT_PORT
        assert config.get("encryption", "mode") == "AES"
        assert config.get("encryption", "key") == DEFAULT_ENCRYPTION_KEY
        assert config.get("security", "reject_invalid_signatures") is True

    def test_get_default_for_unknown(self, temp_dir, clean_env):
        config = Config(temp_dir / "missing.toml")
        assert config.get("nope", "key", 42) == 42

    def test_set_does_not_leak_into_defaults(self, temp_dir, clean_env):
        config = Config(temp_dir / "missing.toml")
        config.set("network", "port", 1234)
        assert DEFAULT_CONFIG["network"]["port"] == DEFAULT_PORT
        assert Config(temp_dir / "missing.toml").get("network", "port") == DEFAULT_PORT


class TestFileLoading:
    def test_merge_with_defaults(self, temp_dir, clean_env):
        path = temp_dir / "config.toml"
        path.write_text('[network]\nport = 9000\n\n[encryption]\nmode = "Caesar"\nkey = "7"\n')

        config = Config(path)
        assert config.get("network", "port") == 9000
        assert config.get("network", "peer_port") == DEFAULT_PORT
        assert config.get("encryption", "mode") == "Caesar"

    def test_parse_error(self, temp_dir, clean_env):
        path = temp_dir / "config.toml"
        path.write_text("[network\nport = ")
        with pytest.raises(ConfigError) as exc_info:
            Config(path)
        assert exc_info.value.code == ErrorCode.E704_CONFIG_PARSE_ERROR

    def test_save_and_reload(self, temp_dir, clean_env):
        path = temp_dir / "nested" / "config.toml"
        config = Config(path)
        config.set("encryption", "key", 'quote"and\\slash')
        config.set("security", "sign_messages", False)
        config.save()

        reloaded = Config(path)
        assert reloaded.get("encryption", "key") == 'quote"and\\slash'
        assert reloaded.get("security", "sign_messages") is False


class TestEnvironmentOverrides:
    def test_typed_overrides(self, temp_dir, clean_env):
        clean_env.setenv("LANCHAT_NETWORK_PORT", "9100")
        clean_env.setenv("LANCHAT_SECURITY_SIGN_MESSAGES", "false")
        clean_env.setenv("LANCHAT_ENCRYPTION_MODE", "Playfair")

        config = Config(temp_dir / "missing.toml")
        assert config.get("network", "port") == 9100
        assert config.get("security", "sign_messages") is False
        assert config.get("encryption", "mode") == "Playfair"

    def test_bad_int_keeps_default(self, temp_dir, clean_env):
        clean_env.setenv("LANCHAT_NETWORK_PORT", "lots")
        assert Config(temp_dir / "missing.toml").get("network", "port") == DEFAULT_PORT


class TestRuntimeSettings:
    def test_cipher_settings(self, temp_dir, clean_env):
        config = Config(temp_dir / "missing.toml")
        config.set("encryption", "mode", "3des")
        config.set("encryption", "key", "long enough key")

        settings = config.cipher_settings()
        assert settings.mode == EncryptionMode.TRIPLE_DES
        assert settings.key == "long enough key"

    def test_unknown_mode(self, temp_dir, clean_env):
        config = Config(temp_dir / "missing.toml")
        config.set("encryption", "mode", "Enigma")
        with pytest.raises(ConfigError) as exc_info:
            config.cipher_settings()
        assert exc_info.value.code == ErrorCode.E703_INVALID_CONFIG

    def test_key_invalid_for_mode(self, temp_dir, clean_env):
        config = Config(temp_dir / "missing.toml")
        config.set("encryption", "mode", "Caesar")
        config.set("encryption", "key", "my_secret_aes_key_123")
        with pytest.raises(ConfigError):
            config.cipher_settings()

    def test_hybrid_needs_no_key(self, temp_dir, clean_env):
        config = Config(temp_dir / "missing.toml")
        config.set("encryption", "mode", "RSA")
        config.set("encryption", "key", "")
        assert config.cipher_settings().mode == EncryptionMode.RSA_HYBRID

    def test_security_policy(self, temp_dir, clean_env):
        config = Config(temp_dir / "missing.toml")
        config.set("security", "reject_invalid_signatures", False)
        policy = config.security_policy()
        assert policy.sign_messages is True
        assert policy.reject_invalid_signatures is False
        assert policy.symmetric_handshake is True
