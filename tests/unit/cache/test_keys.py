"""Tests for cache key generation."""

from momento.cache.keys import CacheKeys, Namespace, make_key, query_discriminator
from momento.core.models import PostSort


class TestMakeKey:
    """Test namespace:discriminator keys."""

    def test_string_namespace(self) -> None:
        """Plain string namespaces are joined with a colon."""
        assert make_key("post", "abc") == "post:abc"

    def test_enum_namespace(self) -> None:
        """Namespace enum members use their value."""
        assert make_key(Namespace.POSTS, "x") == "posts:x"

    def test_post_key(self) -> None:
        """Single post key has correct format."""
        assert CacheKeys.post("abc123") == "post:abc123"

    def test_user_key(self) -> None:
        """User profile key has correct format."""
        assert CacheKeys.user("u1") == "user:u1"


class TestQueryDiscriminator:
    """Test stable query serialization."""

    def test_parameter_order_does_not_matter(self) -> None:
        """Logically identical queries share a discriminator."""
        a = query_discriminator({"skip": "0", "limit": "20"})
        b = query_discriminator({"limit": "20", "skip": "0"})
        assert a == b

    def test_values_normalized_to_strings(self) -> None:
        """Ints and strings of the same value share a discriminator."""
        assert query_discriminator({"limit": 20}) == query_discriminator({"limit": "20"})

    def test_different_values_differ(self) -> None:
        """Different pages never share a key."""
        assert query_discriminator({"skip": 0}) != query_discriminator({"skip": 20})

    def test_none_values_dropped(self) -> None:
        """Unset parameters do not change the key."""
        assert query_discriminator({"limit": 20, "sort_by": None}) == query_discriminator(
            {"limit": 20}
        )

    def test_enum_and_bool_normalization(self) -> None:
        """Enums use their value and booleans are lowercase."""
        result = query_discriminator({"sort_by": PostSort.MOST_LIKED, "liked": True})
        assert result == '{"liked":"true","sort_by":"mostLiked"}'

    def test_include_filters_parameters(self) -> None:
        """Only included parameter names take part."""
        result = query_discriminator({"limit": 5, "utm_source": "mail"}, include=["limit"])
        assert result == '{"limit":"5"}'

    def test_prefix(self) -> None:
        """Prefix is joined with the namespace separator."""
        assert query_discriminator({}, prefix="feed:u1") == "feed:u1:{}"

    def test_post_list_key(self) -> None:
        """Post list keys live in the posts namespace with their scope."""
        key = CacheKeys.post_list({"limit": 20, "skip": 0}, scope="user:u1")
        assert key == 'posts:user:u1:{"limit":"20","skip":"0"}'


class TestParseKey:
    """Test key parsing."""

    def test_parse_valid_key(self) -> None:
        """Valid key is split at the first separator."""
        result = CacheKeys.parse_key('posts:all:{"limit":"20"}')
        assert result == {"namespace": "posts", "discriminator": 'all:{"limit":"20"}'}

    def test_parse_invalid_key_returns_none(self) -> None:
        """Keys without a namespace return None."""
        assert CacheKeys.parse_key("invalid") is None
        assert CacheKeys.parse_key(":orphan") is None
