"""Tests for SchemeConfig, CKKSTrainingContext and backend selection."""

from __future__ import annotations

import sys

import pytest
import torch

from mocks.mock_backend import MockCKKSBackend

from ckks_brain import backends
from ckks_brain.context import CKKSTrainingContext, SchemeConfig
from ckks_brain.errors import (
    BackendUnavailableError,
    ConfigurationError,
    DepthExhaustedError,
    SecretKeyUnavailableError,
)


class TestSchemeConfig:
    def test_default_config_is_secure(self):
        config = SchemeConfig()
        assert config.total_coeff_bits <= 881
        assert config.max_level == config.mult_depth

    def test_coeff_mod_chain(self):
        config = SchemeConfig(poly_mod_degree=8192, scale_bits=40, mult_depth=2)
        assert config.coeff_mod_bits == (60, 40, 40, 60)
        assert config.modulus_bits(0) == 60
        assert config.modulus_bits(2) == 140

    def test_chain_too_long_for_ring_raises(self):
        with pytest.raises(ConfigurationError, match="exceeds the 128-bit bound"):
            SchemeConfig(poly_mod_degree=8192, mult_depth=8)

    def test_disabled_security_warns(self):
        with pytest.warns(UserWarning, match="security checks are disabled"):
            SchemeConfig(poly_mod_degree=8192, mult_depth=8, security_level=None)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"poly_mod_degree": 5000},
            {"scale_bits": 60},
            {"mult_depth": 0},
            {"security_level": "256_classic"},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ConfigurationError):
            SchemeConfig(**kwargs)

    @pytest.mark.parametrize(
        "depth, expected_n",
        [(2, 8192), (4, 16384), (7, 16384), (8, 32768), (19, 32768)],
    )
    def test_for_depth_picks_smallest_ring(self, depth, expected_n):
        config = SchemeConfig.for_depth(depth)
        assert config.poly_mod_degree == expected_n
        assert config.mult_depth == depth

    def test_for_depth_beyond_largest_ring_raises(self):
        with pytest.raises(DepthExhaustedError):
            SchemeConfig.for_depth(20)


class TestEncryption:
    def test_encode_decode_round_trip(self, ctx):
        assert ctx.decode(ctx.encode(0.123456)) == pytest.approx(0.123456, abs=1e-5)

    def test_encrypt_decrypt_round_trip(self, ctx):
        assert ctx.decrypt(ctx.encrypt(-0.654321)) == pytest.approx(-0.654321, abs=1e-5)

    def test_encode_at_level(self, ctx):
        plain = ctx.encode(1.0, level=3)
        assert plain.level == 3
        assert ctx.encrypt(plain).level == 3

    def test_encrypt_vector_from_tensor(self, ctx):
        # given
        values = torch.tensor([[0.1, 0.2], [0.3, 0.4]])

        # when
        encrypted = ctx.encrypt_vector(values)

        # then
        assert len(encrypted) == 4
        torch.testing.assert_close(
            ctx.decrypt_vector(encrypted),
            values.reshape(-1).to(torch.float64),
        )

    def test_scalar_decrypt_uses_its_context(self, ctx):
        assert ctx.encrypt(0.5).decrypt() == pytest.approx(0.5)


class TestKeySplit:
    def test_public_context_cannot_decrypt(self, ctx):
        # given
        public = ctx.make_public()
        x = public.encrypt(0.5)

        # then
        assert not public.has_secret_key
        with pytest.raises(SecretKeyUnavailableError):
            public.decrypt(x)
        assert ctx.decrypt(x) == pytest.approx(0.5)

    def test_public_context_shares_scheme(self, ctx):
        public = ctx.make_public()
        assert public.scheme_id == ctx.scheme_id
        assert public.config is ctx.config
        assert "public" in repr(public)


class TestBackendSelection:
    @pytest.fixture
    def registry(self, monkeypatch):
        monkeypatch.setattr(backends, "_FACTORIES", {})
        backends.register_backend("mock", MockCKKSBackend)
        return backends

    def test_backend_is_created_lazily(self, registry, scheme_config):
        # given
        ctx = CKKSTrainingContext(scheme_config, backend="mock")
        assert "not initialized" in repr(ctx)

        # when
        x = ctx.encrypt(0.25)

        # then
        assert isinstance(ctx.backend, MockCKKSBackend)
        assert ctx.decrypt(x) == pytest.approx(0.25)

    def test_environment_variable_selects_backend(self, registry, scheme_config, monkeypatch):
        monkeypatch.setenv(backends.BACKEND_ENV_VAR, "mock")
        ctx = CKKSTrainingContext(scheme_config)
        assert ctx.backend.name == "mock"

    def test_unknown_backend_raises(self, scheme_config):
        ctx = CKKSTrainingContext(scheme_config, backend="nope")
        with pytest.raises(ConfigurationError, match="unknown CKKS backend 'nope'"):
            ctx.encrypt(1.0)

    def test_missing_tenseal_raises(self, scheme_config, monkeypatch):
        from ckks_brain.backends import seal

        monkeypatch.setattr(seal, "_ts", None)
        monkeypatch.setitem(sys.modules, "tenseal", None)

        ctx = CKKSTrainingContext(scheme_config, backend="seal")
        with pytest.raises(BackendUnavailableError, match="pip install"):
            ctx.encrypt(1.0)
        assert not seal.is_available()
