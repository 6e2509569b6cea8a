"""
命名解析單元測試
display name 標籤解析、檔名決定（標籤 / fallback / 舊式 display name）、路徑清理。
"""
import pytest
from zeplin_sync.naming import (
    display_name_filename,
    format_density,
    parse_display_name_params,
    resolve_filename,
    sanitize_name,
    screen_dir_name,
)


# ─── parse_display_name_params ──────────────────────────────────────────────

def test_parse_key_value_tags():
    assert parse_display_name_params("Icon[id:home][scale:2x]") == {"id": "home", "scale": "2x"}


def test_parse_no_tags_returns_none():
    assert parse_display_name_params("Icon") is None


def test_parse_empty_name_returns_none():
    assert parse_display_name_params("") is None


def test_parse_flag_without_colon_is_true():
    assert parse_display_name_params("Hero[id:hero][retina]") == {"id": "hero", "retina": True}


def test_parse_value_keeps_text_after_first_colon():
    assert parse_display_name_params("Logo[url:https://x.io/a]") == {"url": "https://x.io/a"}


def test_parse_later_duplicate_overwrites():
    assert parse_display_name_params("A[id:one][id:two]") == {"id": "two"}


def test_parse_empty_brackets_ignored():
    assert parse_display_name_params("A[][id:x]") == {"id": "x"}


def test_parse_unclosed_bracket_is_not_a_tag():
    assert parse_display_name_params("Icon[id:home") is None


# ─── resolve_filename ───────────────────────────────────────────────────────

def test_resolve_uses_id_tag():
    assert resolve_filename({"id": "home"}, "png", 3) == "home.png"


def test_resolve_fallback_is_one_based_layer_index():
    assert resolve_filename(None, "png", 3) == "asset4.png"
    assert resolve_filename({}, "svg", 0) == "asset1.svg"


def test_resolve_flag_id_falls_back():
    assert resolve_filename({"id": True}, "png", 1) == "asset2.png"


def test_resolve_density_one_has_no_suffix():
    assert resolve_filename({"id": "home"}, "png", 0, density=1) == "home.png"
    assert resolve_filename({"id": "home"}, "png", 0, density=1.0) == "home.png"


def test_resolve_other_densities_do_not_collide():
    names = {resolve_filename(None, "png", 2, density=d) for d in (1, 1.5, 2, 3)}
    assert names == {"asset3.png", "asset3@1.5x.png", "asset3@2x.png", "asset3@3x.png"}


def test_resolve_id_with_path_separator_is_sanitized():
    assert resolve_filename({"id": "icons/home"}, "png", 0) == "icons-home.png"


# ─── display-name scheme / helpers ──────────────────────────────────────────

def test_display_name_filename():
    assert display_name_filename("Icons/Home", 2, "png") == "Icons-Home-2x.png"
    assert display_name_filename("Hero", 1.5, "jpg") == "Hero-1.5x.jpg"


@pytest.mark.parametrize("value, label", [(1, "1"), (2.0, "2"), (1.5, "1.5"), ("3", "3")])
def test_format_density(value, label):
    assert format_density(value) == label


def test_sanitize_name_replaces_separators():
    assert sanitize_name("Onboarding/Step 1\\a") == "Onboarding-Step 1-a"


def test_screen_dir_name_never_empty():
    assert screen_dir_name("") == "unnamed"
    assert screen_dir_name("Home/Main") == "Home-Main"
