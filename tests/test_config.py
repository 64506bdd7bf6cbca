from __future__ import annotations

from dataclasses import fields
from pathlib import Path

import pytest

from ringward.config import (
    ClusterConfig,
    ClusterEnvironment,
    _deep_merge,
    _env_overrides,
    load_config,
    resolve_settings,
)
from ringward.constants import InstanceEnvironment, MembershipType
from ringward.core.exceptions import ConfigurationError

pytestmark = [pytest.mark.xdist_group("unit")]

PROJECT_TOML = """
[cluster]
app_name = "cass_orders"
racs = ["us-east-1a", "us-east-1c", "us-east-1d"]
membership = "ec2"

[instance]
instance_id = "i-0abc"
region = "us-east-1"
rac = "us-east-1a"
vpc_id = "vpc-123"

[logging]
level = "DEBUG"
console = false
"""


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    (tmp_path / "ringward.toml").write_text(PROJECT_TOML)
    return tmp_path


@pytest.fixture
def no_global(tmp_path: Path) -> Path:
    return tmp_path / "missing-defaults.toml"


class TestDeepMerge:
    def test_nested_tables_merge(self):
        base = {"cluster": {"app_name": "a", "multi_dc": True}, "logging": {"level": "INFO"}}
        override = {"cluster": {"app_name": "b"}}

        assert _deep_merge(base, override) == {
            "cluster": {"app_name": "b", "multi_dc": True},
            "logging": {"level": "INFO"},
        }

    def test_scalars_replace_tables(self):
        assert _deep_merge({"a": {"b": 1}}, {"a": 2}) == {"a": 2}

    def test_inputs_untouched(self):
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"c": 2}})
        assert base == {"a": {"b": 1}}


class TestLoadConfig:
    def test_project_overrides_global(self, tmp_path, project_dir):
        global_path = tmp_path / "defaults.toml"
        global_path.write_text('[cluster]\napp_name = "global"\nmulti_dc = true\n')

        config = load_config(project_dir=project_dir, global_path=global_path)

        assert config["cluster"]["app_name"] == "cass_orders"
        assert config["cluster"]["multi_dc"] is True

    def test_environment_overrides_files(self, project_dir, no_global, monkeypatch):
        monkeypatch.setenv("RINGWARD_APP_NAME", "from_env")
        monkeypatch.setenv("RINGWARD_MULTI_DC", "yes")

        config = load_config(project_dir=project_dir, global_path=no_global)

        assert config["cluster"]["app_name"] == "from_env"
        assert config["cluster"]["multi_dc"] is True
        assert config["cluster"]["membership"] == "ec2"

    def test_missing_files_yield_empty_tables(self, tmp_path, no_global):
        config = load_config(project_dir=tmp_path, global_path=no_global)
        assert config == {"cluster": {}, "instance": {}, "logging": {}}

    def test_invalid_toml(self, tmp_path, no_global):
        (tmp_path / "ringward.toml").write_text("[cluster\n")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            load_config(project_dir=tmp_path, global_path=no_global)


class TestEnvOverrides:
    def test_covers_every_cluster_field(self):
        assert set(ClusterEnvironment.model_fields) == {f.name for f in fields(ClusterConfig)}

    def test_nothing_set(self):
        assert _env_overrides() == {}

    def test_typed_values(self, monkeypatch):
        monkeypatch.setenv("RINGWARD_AUTO_BOOTSTRAP", "false")
        monkeypatch.setenv("RINGWARD_RACS", "us-east-1a, us-east-1c")
        monkeypatch.setenv("RINGWARD_NEW_TOKEN_ATTEMPTS", "7")
        monkeypatch.setenv("RINGWARD_NEW_TOKEN_DELAY", "0.5")
        monkeypatch.setenv("RINGWARD_CREDENTIAL_FILE", "/etc/aws.properties")
        monkeypatch.setenv("RINGWARD_SEEDS", "")
        monkeypatch.setenv("UNRELATED", "x")

        assert _env_overrides() == {
            "auto_bootstrap": False,
            "racs": ("us-east-1a", "us-east-1c"),
            "new_token_attempts": 7,
            "new_token_delay": 0.5,
            "credential_file": "/etc/aws.properties",
        }

    def test_lowercase_names_are_accepted(self, monkeypatch):
        monkeypatch.setenv("ringward_multi_dc", "on")
        assert _env_overrides() == {"multi_dc": True}

    def test_bad_boolean(self, monkeypatch):
        monkeypatch.setenv("RINGWARD_MULTI_DC", "maybe")
        with pytest.raises(ConfigurationError, match="RINGWARD_MULTI_DC"):
            _env_overrides()

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("RINGWARD_STORAGE_PORT", "seven thousand")
        with pytest.raises(ConfigurationError, match="RINGWARD_STORAGE_PORT"):
            _env_overrides()

    def test_membership_is_validated_with_the_cluster(self, project_dir, no_global, monkeypatch):
        monkeypatch.setenv("RINGWARD_MEMBERSHIP", "k8s")
        with pytest.raises(ConfigurationError, match="Unknown membership type"):
            resolve_settings(project_dir=project_dir, global_path=no_global)


class TestClusterConfig:
    def test_from_dict(self):
        config = ClusterConfig.from_dict({
            "app_name": "cass_orders",
            "racs": "us-east-1a,us-east-1c",
            "membership": "EC2",
            "sibling_asg_names": ["cass_orders-extra"],
        })

        assert config.racs == ("us-east-1a", "us-east-1c")
        assert config.membership is MembershipType.EC2
        assert config.sibling_asg_names == ("cass_orders-extra",)
        assert config.group_name == "cass_orders"
        assert config.storage_port == 7000
        assert config.new_token_attempts == 100

    def test_acl_group_name_overrides_app_name(self):
        config = ClusterConfig(app_name="cass_orders", racs=("a",), acl_group_name="cass_sg")
        assert config.group_name == "cass_sg"

    def test_unknown_keys(self):
        with pytest.raises(ConfigurationError, match="unknown keys: zone"):
            ClusterConfig.from_dict({"app_name": "a", "racs": ["x"], "zone": "y"})

    def test_unknown_membership(self):
        with pytest.raises(ConfigurationError, match="Unknown membership type"):
            ClusterConfig.from_dict({"app_name": "a", "racs": ["x"], "membership": "k8s"})

    def test_missing_required_field(self):
        with pytest.raises(ConfigurationError):
            ClusterConfig.from_dict({"racs": ["x"]})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"app_name": ""},
            {"racs": ()},
            {"new_token_attempts": 0},
            {"new_token_delay": -1.0},
        ],
    )
    def test_validation(self, overrides):
        values = {"app_name": "a", "racs": ("x",), **overrides}
        with pytest.raises(ConfigurationError):
            ClusterConfig(**values)

    def test_racs_must_be_listy(self):
        with pytest.raises(ConfigurationError, match="Expected a list"):
            ClusterConfig.from_dict({"app_name": "a", "racs": 3})


class TestResolveSettings:
    def test_full_settings(self, project_dir, no_global):
        settings = resolve_settings(project_dir=project_dir, global_path=no_global)

        assert settings.cluster.app_name == "cass_orders"
        assert settings.cluster.membership is MembershipType.EC2
        assert settings.instance is not None
        assert settings.instance.instance_id == "i-0abc"
        assert settings.instance.environment is InstanceEnvironment.VPC
        assert settings.logging.level == "DEBUG"
        assert settings.logging.console is False

    def test_instance_section_is_optional(self, tmp_path, no_global):
        (tmp_path / "ringward.toml").write_text('[cluster]\napp_name = "a"\nracs = ["x"]\n')

        settings = resolve_settings(project_dir=tmp_path, global_path=no_global)
        assert settings.instance is None

    def test_incomplete_instance_section(self, tmp_path, no_global):
        (tmp_path / "ringward.toml").write_text(
            '[cluster]\napp_name = "a"\nracs = ["x"]\n[instance]\ninstance_id = "i-1"\n'
        )

        with pytest.raises(ConfigurationError, match="region, rac"):
            resolve_settings(project_dir=tmp_path, global_path=no_global)

    def test_bad_environment(self, tmp_path, no_global):
        (tmp_path / "ringward.toml").write_text(
            '[cluster]\napp_name = "a"\nracs = ["x"]\n'
            '[instance]\ninstance_id = "i-1"\nregion = "r"\nrac = "x"\nenvironment = "mainframe"\n'
        )

        with pytest.raises(ConfigurationError, match="mainframe"):
            resolve_settings(project_dir=tmp_path, global_path=no_global)

    def test_unknown_logging_key(self, tmp_path, no_global):
        (tmp_path / "ringward.toml").write_text(
            '[cluster]\napp_name = "a"\nracs = ["x"]\n[logging]\ncolour = true\n'
        )

        with pytest.raises(ConfigurationError, match=r"\[logging\]"):
            resolve_settings(project_dir=tmp_path, global_path=no_global)
