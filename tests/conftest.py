from __future__ import annotations

import pytest

from fakes import FakeLister, cloud_target, group_target
from grant.favorites import FavoriteStore


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "grant" / "config.yaml"


@pytest.fixture
def store(config_file):
    return FavoriteStore(config_file=config_file)


@pytest.fixture
def prod_lister():
    """Azure and AWS eligibility with one directory group."""
    return FakeLister(
        cloud={
            "azure": [
                cloud_target("Prod-EastUS", "Contributor", organization_id="tenant-1"),
                cloud_target("Contoso", "Reader", "directory", workspace_id="tenant-1"),
            ],
            "aws": [cloud_target("AWS Sandbox", "ReadOnly", "account")],
        },
        groups=[group_target("Engineering", directory_id="tenant-1")],
    )
