"""
Tests for tool name sanitization.
"""

import pytest

from bridge.name_sanitizer import NameSanitizer, NamingError


class TestCamelToSeparated:
    """Test camelCase to snake_case conversion."""

    def test_camel_case(self):
        assert NameSanitizer.camel_to_separated("getUserData") == "get_user_data"

    def test_acronym_only_splits_lower_upper_boundary(self):
        assert NameSanitizer.camel_to_separated("XMLHttpRequest") == "xmlhttp_request"

    def test_dotted_action_name(self):
        assert NameSanitizer.camel_to_separated("users.getById") == "users_get_by_id"

    def test_leading_sentinel_is_trimmed(self):
        assert NameSanitizer.camel_to_separated("$node.health") == "node_health"

    def test_may_return_empty_string(self):
        assert NameSanitizer.camel_to_separated("$$..") == ""


class TestStripForbidden:
    """Test generic reduction to a legal name."""

    @pytest.mark.parametrize(
        "value",
        ["users.list", "a b c", "", "___", "$$$", "x" * 200, "tool-name!", "Über.größe"],
    )
    def test_result_is_always_legal(self, value):
        result = NameSanitizer.strip_forbidden(value)
        assert NameSanitizer.is_valid(result)

    def test_keeps_case(self):
        assert NameSanitizer.strip_forbidden("Get.User") == "Get_User"

    def test_collapses_and_trims_underscores(self):
        assert NameSanitizer.strip_forbidden("__a..b__") == "a_b"

    def test_empty_falls_back_to_action(self):
        assert NameSanitizer.strip_forbidden("") == "action"
        assert NameSanitizer.strip_forbidden("...") == "action"

    def test_truncates_to_64_characters(self):
        assert NameSanitizer.strip_forbidden("a" * 100) == "a" * 64

    def test_truncation_happens_after_trim(self):
        # The cut can leave a trailing underscore inside the 64 character window
        value = "a" * 63 + ".b"
        assert NameSanitizer.strip_forbidden(value) == "a" * 63 + "_"

    def test_idempotent_on_legal_names(self):
        for name in ["users_list", "Tool1", "a"]:
            assert NameSanitizer.strip_forbidden(name) == name
            assert NameSanitizer.strip_forbidden(NameSanitizer.strip_forbidden(name)) == name


class TestSanitizeActionName:
    """Test the full action name pipeline."""

    def test_examples(self):
        assert NameSanitizer.sanitize_action_name("users.getById") == "users_get_by_id"
        assert NameSanitizer.sanitize_action_name("$node.health") == "node_health"
        assert NameSanitizer.sanitize_action_name("posts.create") == "posts_create"

    def test_unnameable_action_falls_back(self):
        assert NameSanitizer.sanitize_action_name("$.") == "action"


class TestEnsureUnique:
    """Test collision resolution."""

    def test_unused_name_is_returned(self):
        assert NameSanitizer.ensure_unique("name", set()) == "name"

    def test_first_suffix(self):
        assert NameSanitizer.ensure_unique("test", {"test"}) == "test_1"

    def test_skips_taken_suffixes(self):
        assert NameSanitizer.ensure_unique("test", {"test", "test_1", "test_2"}) == "test_3"

    def test_gives_up_after_max_attempts(self):
        used = {"test"} | {f"test_{i}" for i in range(1, 1001)}
        with pytest.raises(NamingError, match="Failed to generate unique name for: test"):
            NameSanitizer.ensure_unique("test", used)

    def test_does_not_mutate_used_names(self):
        used = {"test"}
        NameSanitizer.ensure_unique("test", used)
        assert used == {"test"}
