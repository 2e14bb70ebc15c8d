"""Tests for the environment table."""

from __future__ import annotations

from pathlib import Path

import pytest

from infra.config import (
    NatGatewayStrategy,
    load_environment_table,
    resolve_environment,
)
from infra.errors import ConfigError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "environments.yaml"
    path.write_text(text)
    return path


def test_packaged_table_defines_all_environments():
    table = load_environment_table()

    assert list(table) == ["dev", "staging", "prod"]
    dev = table["dev"]
    assert dev.aws.region == "ap-southeast-1"
    assert dev.vpc.cidr_block == "10.0.0.0/16"
    assert dev.vpc.availability_zones == ["ap-southeast-1a", "ap-southeast-1b"]
    assert dev.vpc.nat_gateway_strategy == NatGatewayStrategy.ONE_PER_AZ
    assert dev.eks.version == "1.33"
    assert dev.eks.node_groups.workers.instance_types == ["t2.medium"]
    assert table["prod"].vpc.nat_gateway_strategy == NatGatewayStrategy.ONE_PER_AZ


def test_shared_gitops_applies_to_every_environment():
    table = load_environment_table()

    for env in table.values():
        assert [s.name for s in env.gitops.git_sources] == ["example-app-1"]
        assert env.gitops.git_sources[0].secret_ref == "app1-git-token"
        assert env.gitops.flux.namespace == "flux-system"


def test_defaults_are_applied_on_load(tmp_path: Path):
    path = _write(
        tmp_path,
        """
environments:
  sandbox:
    aws: {region: eu-west-1}
    vpc: {availability_zones: [eu-west-1a]}
    gitops:
      git_sources:
        - {name: apps, url: "https://example.com/apps.git"}
      apps:
        - {name: web, git_source: apps, path: ./web, namespace: web}
""",
    )
    env = load_environment_table(path)["sandbox"]

    assert env.vpc.cidr_block == "10.0.0.0/16"
    assert env.vpc.nat_gateway_strategy == NatGatewayStrategy.ONE_PER_AZ
    assert env.eks.node_groups.workers.instance_types == ["t3.medium"]
    assert env.gitops.git_sources[0].branch == "main"
    app = env.gitops.apps[0]
    assert (app.interval, app.prune, app.target_namespace, app.depends_on) == ("5m", True, None, [])


def test_unknown_environment_lists_valid_names():
    table = load_environment_table()

    with pytest.raises(ConfigError) as exc_info:
        resolve_environment("qa", table)
    assert "qa" in str(exc_info.value)
    assert "dev, staging, prod" in str(exc_info.value)


@pytest.mark.parametrize(
    "body",
    [
        "environments:\n  dev:\n    aws: {region: us-east-1}\n    vpc: {availability_zones: [a, a]}\n",
        "environments:\n  dev:\n    aws: {region: us-east-1}\n    vpc: {availability_zones: []}\n",
        "environments:\n  dev:\n    vpc: {availability_zones: [a]}\n",
        (
            "environments:\n  dev:\n    aws: {region: us-east-1}\n    vpc: {availability_zones: [a]}\n"
            "    eks: {node_groups: {workers: {min_size: 3, desired_size: 2, max_size: 4}}}\n"
        ),
        (
            "environments:\n  dev:\n    aws: {region: us-east-1}\n    vpc: {availability_zones: [a]}\n"
            "    gitops: {credentials: [{name: c, type: oauth}]}\n"
        ),
        "environments:\n  dev: [1, 2]\n",
        "environments:\n  dev: just-a-string\n",
    ],
)
def test_invalid_entries_raise_config_error(tmp_path: Path, body: str):
    with pytest.raises(ConfigError, match="dev"):
        load_environment_table(_write(tmp_path, body))


def test_missing_environments_mapping(tmp_path: Path):
    with pytest.raises(ConfigError, match="environments"):
        load_environment_table(_write(tmp_path, "gitops: {}\n"))


def test_unreadable_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_environment_table(tmp_path / "missing.yaml")


def test_top_level_list_raises_config_error(tmp_path: Path):
    with pytest.raises(ConfigError, match="mapping"):
        load_environment_table(_write(tmp_path, "- dev\n- prod\n"))
