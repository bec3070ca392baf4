"""路径与 id 规则：实体前缀必须以 ``/`` 结尾，避免 Shopify 命中 Shopify Inc。"""

import pytest

from app.packages.drive.core.exceptions import ValidationError
from app.packages.drive.utils.path_utils import (
    entity_prefix,
    folder_id,
    is_entity_path,
    join_key,
    normalize_name,
    replace_last_segment,
    replace_prefix,
    require_owner,
    rewrite_entity_path,
)


def test_normalize_name_trims_and_rejects_blank():
    assert normalize_name("  Shopify  ") == "Shopify"
    for raw in ("", "   ", None):
        with pytest.raises(ValidationError):
            normalize_name(raw)


@pytest.mark.parametrize("raw", ["a/b", ".", ".."])
def test_normalize_name_rejects_path_like_values(raw):
    with pytest.raises(ValidationError):
        normalize_name(raw, field="entityName")


def test_require_owner():
    assert require_owner(" u1 ") == "u1"
    with pytest.raises(ValidationError):
        require_owner("  ")


def test_folder_id_is_deterministic_slug():
    assert folder_id("u1", "Shopify") == "FOLDER_u1_shopify"
    assert folder_id("u1", "Shopify Inc") == "FOLDER_u1_shopify-inc"
    # 不同名称可能归一化到同一个 id
    assert folder_id("u1", "Q1 Data") == folder_id("u1", "q1-data")


def test_entity_prefix_layout():
    assert entity_prefix("brmh-drive", "u1", "Shopify") == "brmh-drive/users/u1/entities/Shopify/"
    assert not "brmh-drive/users/u1/entities/Shopify Inc/.folder".startswith(
        entity_prefix("brmh-drive", "u1", "Shopify")
    )
    assert join_key("brmh-drive/", "/users", "u1") == "brmh-drive/users/u1"


def test_is_entity_path_only_matches_depth_two():
    assert is_entity_path("entities/Shopify")
    assert not is_entity_path("entities/Shopify/files")
    assert not is_entity_path("entities/")
    assert not is_entity_path("other/Shopify")


def test_rewrite_helpers():
    assert rewrite_entity_path("entities/Shopify/files", "Shopify", "Shopify Inc") == "entities/Shopify Inc/files"
    assert rewrite_entity_path("entities/Shopify", "Shopify", "Shopify Inc") == "entities/Shopify Inc"
    assert rewrite_entity_path(None, "Shopify", "Shopify Inc") == "entities/Shopify Inc"
    assert rewrite_entity_path("entities/Shopifyx", "Shopify", "New") == "entities/Shopifyx"
    assert replace_prefix("a/b/c", "a/b/", "x/") == "x/c"
    assert replace_prefix("z/b/c", "a/b/", "x/") == "z/b/c"
    assert replace_last_segment("a/b/old.csv", "new.csv") == "a/b/new.csv"
