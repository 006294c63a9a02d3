import os
import pytest
from redpack.errors import ConfigError
from redpack.MODELS.image_recipe import Topology
from redpack.PARSERS.config_parser import ProjectConfigParser

def test_empty_config_gives_defaults():
    config = ProjectConfigParser(context={}).load(None)
    assert set(config.images) == {Topology.SENTINEL, Topology.CLUSTER}
    assert config.recipe("sentinel").port == 26379
    assert config.recipe(Topology.CLUSTER).port == 6379
    assert config.source_dir == "."

def test_parse_with_interpolation(tmp_path):
    content = """
base_image: ${BASE:-redis:alpine}
source_dir: inputs
images:
  sentinel:
    tag: ${REGISTRY}/sentinel:1
  cluster:
    port: 7000
    script_mode: 0750
"""
    path = tmp_path / "redpack.yml"
    path.write_text(content)

    parser = ProjectConfigParser(context={"REGISTRY": "registry.local", "BASE": "redis:7.2-alpine"})
    config = parser.load(str(path))

    assert config.base_image == "redis:7.2-alpine"
    assert config.source_dir == str(tmp_path / "inputs")
    sentinel = config.recipe("sentinel")
    assert sentinel.tag == "registry.local/sentinel:1"
    assert sentinel.base_image == "redis:7.2-alpine"
    cluster = config.recipe("cluster")
    assert cluster.port == 7000
    assert cluster.script_mode == "0750"
    assert cluster.tag == "redpack/redis-cluster:latest"

def test_default_used_for_empty_variable():
    config = ProjectConfigParser(context={"BASE": ""}).parse_from_string("base_image: ${BASE:-redis:alpine}\n")
    assert config.base_image == "redis:alpine"

def test_unset_variable_raises():
    with pytest.raises(ConfigError, match="MISSING"):
        ProjectConfigParser(context={}).parse_from_string("base_image: ${MISSING}\n")

def test_per_image_source_dir_resolved(tmp_path):
    config = ProjectConfigParser(context={}).parse_from_string(
        "images:\n  cluster:\n    source_dir: cluster\n", base_dir=str(tmp_path))
    assert config.recipe("cluster").source_dir == str(tmp_path / "cluster")
    assert config.recipe("sentinel").source_dir is None

@pytest.mark.parametrize("content,message", [
    ("foo: 1\n", "Unknown configuration keys: foo"),
    ("- a\n- b\n", "YAML mapping"),
    ("images:\n  replica: {}\n", "Unknown topology 'replica'"),
    ("images: [sentinel]\n", "must be a mapping"),
    ("images:\n  sentinel: 5\n", "must be a mapping"),
    ("images:\n  sentinel:\n    topology: cluster\n", "cannot be set"),
    ("images:\n  sentinel:\n    port: 99999\n", "Invalid image settings"),
    ("images:\n  sentinel:\n    colour: red\n", "Invalid image settings"),
    ("base_image: redis:bookworm\n", "Invalid image settings"),
    ("base_image: [unclosed\n", "Invalid config file"),
])
def test_invalid_configs(content, message):
    with pytest.raises(ConfigError, match=message):
        ProjectConfigParser(context={}).parse_from_string(content)

def test_missing_file():
    with pytest.raises(ConfigError, match="not found"):
        ProjectConfigParser(context={}).load("no-such-redpack.yml")

def test_dotenv_fills_context(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("REDPACK_TEST_REGISTRY=from-dotenv\nREDPACK_TEST_BASE=redis:7-alpine\n")
    monkeypatch.setenv("REDPACK_TEST_BASE", "redis:8-alpine")
    monkeypatch.delenv("REDPACK_TEST_REGISTRY", raising=False)

    parser = ProjectConfigParser(env_file=str(env_file))
    config = parser.parse_from_string(
        "base_image: ${REDPACK_TEST_BASE}\n"
        "images:\n  sentinel:\n    tag: ${REDPACK_TEST_REGISTRY}/sentinel\n")

    # The process environment wins over .env
    assert config.base_image == "redis:8-alpine"
    assert config.recipe("sentinel").tag == "from-dotenv/sentinel"
    assert "REDPACK_TEST_REGISTRY" not in os.environ
