"""Tests for provider parsing and routing."""

import pytest

from ccrouter.core.context import RequestContext
from ccrouter.core.exceptions import ConfigurationError, ProviderNotFoundError
from ccrouter.core.router import Provider, ProviderRouter, parse_providers, split_route

CONFIG = {
    "providers": [
        {"name": "acme", "api_base_url": "http://acme.test/v1", "api_key": "k", "models": ["gpt-test"]},
        {"name": "other", "api_base_url": "http://other.test/v1/chat/completions", "timeout": 5},
    ],
    "router": {"default": "acme,gpt-test"},
}


class TestParseProviders:
    """Tests for parse_providers."""

    def test_parses_entries(self):
        """Test provider fields and defaults."""
        providers = parse_providers(CONFIG)
        assert providers["acme"].api_key == "k"
        assert providers["acme"].models == ["gpt-test"]
        assert providers["acme"].timeout == 600.0
        assert providers["other"].timeout == 5.0

    @pytest.mark.parametrize(
        "entry",
        [
            "not-a-mapping",
            {"api_base_url": "http://x"},
            {"name": "x"},
            {"name": "x", "api_base_url": "http://x", "timeout": "soon"},
        ],
    )
    def test_invalid_entries(self, entry):
        """Test malformed provider entries are rejected."""
        with pytest.raises(ConfigurationError):
            parse_providers({"providers": [entry]})

    def test_duplicate_names(self):
        """Test two providers with the same name are rejected."""
        entry = {"name": "x", "api_base_url": "http://x"}
        with pytest.raises(ConfigurationError, match="twice"):
            parse_providers({"providers": [entry, entry]})


class TestProvider:
    """Tests for Provider."""

    def test_chat_completions_url(self):
        """Test the endpoint path is appended once."""
        assert Provider("a", "http://a/v1/").chat_completions_url == "http://a/v1/chat/completions"
        assert (
            Provider("b", "http://b/v1/chat/completions").chat_completions_url
            == "http://b/v1/chat/completions"
        )


class TestProviderRouter:
    """Tests for ProviderRouter."""

    def test_split_route(self):
        """Test provider prefixes are split off at the first comma."""
        assert split_route("acme,gpt-4o") == ("acme", "gpt-4o")
        assert split_route("gpt-4o") == (None, "gpt-4o")
        assert split_route("acme,org/model,v2") == ("acme", "org/model,v2")

    def test_explicit_provider(self):
        """Test 'provider,model' routes and rewrites the body model."""
        router = ProviderRouter.from_config(CONFIG)
        ctx = RequestContext(body={"model": "other,big-model"})
        provider = router.route(ctx)
        assert provider.name == "other"
        assert ctx.provider == "other"
        assert ctx.model == "big-model"
        assert ctx.body["model"] == "big-model"

    def test_default_route(self):
        """Test bare model names use the default route."""
        router = ProviderRouter.from_config(CONFIG)
        ctx = RequestContext(body={"model": "claude-sonnet"})
        assert router.route(ctx).name == "acme"
        assert ctx.body["model"] == "gpt-test"

    def test_no_default(self):
        """Test bare models fail without a default route."""
        router = ProviderRouter.from_config({"providers": CONFIG["providers"]})
        with pytest.raises(ProviderNotFoundError):
            router.route(RequestContext(body={"model": "claude-sonnet"}))

    def test_unknown_provider(self):
        """Test an unknown provider prefix fails."""
        router = ProviderRouter.from_config(CONFIG)
        with pytest.raises(ProviderNotFoundError, match="missing"):
            router.route(RequestContext(body={"model": "missing,m"}))

    def test_default_must_name_known_provider(self):
        """Test a default route to an unknown provider is a config error."""
        with pytest.raises(ConfigurationError):
            ProviderRouter.from_config({"providers": CONFIG["providers"], "router": {"default": "nope,m"}})
