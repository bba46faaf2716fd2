"""Tests for EncryptedScalar arithmetic and level/scale coordination."""

from __future__ import annotations

import pytest

from ckks_brain import levels
from ckks_brain.errors import DepthExhaustedError, LevelMismatchError, ScaleMismatchError


class TestFreshScalars:
    def test_fresh_scalar_sits_at_top_level(self, ctx):
        # when
        x = ctx.encrypt(0.5)

        # then
        assert x.level == ctx.config.max_level
        assert x.scale_bits == ctx.config.scale_bits
        assert x.size == 2
        assert x.is_canonical

    def test_repr_shows_bookkeeping(self, ctx):
        x = ctx.encrypt(0.5)
        assert repr(x) == f"EncryptedScalar(level={x.level}, scale=2^40, size=2)"


class TestMultiply:
    def test_product_is_pending(self, ctx):
        # given
        a, b = ctx.encrypt(0.5), ctx.encrypt(0.25)

        # when
        c = a * b

        # then
        assert c.size == 3
        assert c.scale_bits == 80
        assert c.level == a.level
        assert c.decrypt() == pytest.approx(0.125)

    def test_chained_product_rescales_first(self, ctx):
        # given
        a, b, d = ctx.encrypt(0.5), ctx.encrypt(0.25), ctx.encrypt(4.0)

        # when
        c = (a * b) * d

        # then
        assert c.level == ctx.config.max_level - 1
        assert c.scale_bits == 80
        assert c.decrypt() == pytest.approx(0.5)

    def test_operands_at_different_levels_are_aligned(self, ctx, op_log):
        # given
        low = ctx.encrypt(2.0).mod_switch().mod_switch()
        high = ctx.encrypt(3.0)

        # when
        c = low * high

        # then
        assert c.level == low.level
        assert op_log[-1].op == "multiply"
        assert op_log[-1].levels == (low.level, low.level)
        assert c.decrypt() == pytest.approx(6.0)

    def test_plain_multiply_encodes_at_cipher_level(self, ctx, op_log):
        # given
        x = ctx.encrypt(0.5).mod_switch()

        # when
        y = x * 3.0

        # then
        assert op_log[-1].op == "multiply_plain"
        assert op_log[-1].levels == (x.level, x.level)
        assert y.scale_bits == 80
        assert y.size == 2
        assert y.decrypt() == pytest.approx(1.5)

    def test_plaintext_from_other_level_is_reencoded(self, ctx):
        # given
        plain = ctx.encode(2.0)
        x = ctx.encrypt(0.25).mod_switch()

        # when
        y = x.mul_plain(plain)

        # then
        assert y.decrypt() == pytest.approx(0.5)

    def test_rmul_with_number(self, ctx):
        assert (2.0 * ctx.encrypt(0.25)).decrypt() == pytest.approx(0.5)


class TestAdd:
    def test_equal_scales_only_align_levels(self, ctx):
        # given
        a = ctx.encrypt(1.0) * ctx.encrypt(2.0)
        b = (ctx.encrypt(3.0) * ctx.encrypt(4.0)).mod_switch()

        # when
        c = a + b

        # then
        assert c.scale_bits == 80
        assert c.level == b.level
        assert c.decrypt() == pytest.approx(14.0)

    def test_pending_operand_is_rescaled_for_fresh_addend(self, ctx):
        # given
        pending = ctx.encrypt(0.5) * ctx.encrypt(0.5)
        fresh = ctx.encrypt(1.0)

        # when
        c = fresh - pending

        # then
        assert c.scale_bits == ctx.config.scale_bits
        assert c.level == ctx.config.max_level - 1
        assert c.decrypt() == pytest.approx(0.75)

    def test_negation(self, ctx):
        assert (-ctx.encrypt(0.75)).decrypt() == pytest.approx(-0.75)


class TestRescale:
    def test_rescale_drops_level_and_scale(self, ctx):
        # given
        x = ctx.encrypt(0.5).square()

        # when
        y = x.rescale()

        # then
        assert y.level == x.level - 1
        assert y.scale_bits == ctx.config.scale_bits
        assert y.size == 2

    def test_rescale_at_base_scale_raises(self, ctx):
        with pytest.raises(ScaleMismatchError):
            ctx.encrypt(0.5).rescale()

    def test_rescale_at_level_zero_raises(self, make_context):
        # given
        ctx = make_context(1)
        x = ctx.encrypt(0.5).square().rescale()
        assert x.level == 0

        # then
        with pytest.raises(DepthExhaustedError):
            x.square()

    def test_mod_switch_at_level_zero_raises(self, make_context):
        ctx = make_context(1)
        x = ctx.encrypt(0.5).mod_switch()
        with pytest.raises(DepthExhaustedError):
            x.mod_switch()

    def test_depth_exhausted_is_a_level_mismatch(self):
        err = DepthExhaustedError("rescale", 0)
        assert isinstance(err, LevelMismatchError)
        assert "level 0" in str(err)


class TestCoordinatorChecks:
    def test_scalars_from_unrelated_contexts_are_rejected(self, ctx, make_context):
        other = make_context()
        with pytest.raises(LevelMismatchError):
            ctx.encrypt(1.0) + other.encrypt(1.0)

    def test_public_and_private_scalars_combine(self, ctx, public_ctx):
        c = ctx.encrypt(1.0) + public_ctx.encrypt(2.0)
        assert ctx.decrypt(c) == pytest.approx(3.0)

    def test_backend_level_drift_is_detected(self, scheme_config):
        from mocks.mock_backend import DriftingBackend

        from ckks_brain import CKKSTrainingContext

        ctx = CKKSTrainingContext(scheme_config, backend=DriftingBackend(scheme_config))
        with pytest.raises(LevelMismatchError, match="backend reports level"):
            ctx.encrypt(1.0) * ctx.encrypt(2.0)

    def test_levels_remaining_is_minimum(self, ctx):
        a = ctx.encrypt(1.0)
        b = a.mod_switch().mod_switch()
        assert levels.levels_remaining(a, b) == b.level

    def test_every_binary_op_sees_equal_levels(self, ctx, op_log):
        # given
        a = ctx.encrypt(0.3)
        b = ctx.encrypt(0.7).mod_switch().mod_switch().mod_switch()

        # when
        ((a * b) + a.square() - b * 2.0).decrypt()

        # then
        binary = [r for r in op_log if len(r.levels) == 2]
        assert binary
        assert all(r.levels[0] == r.levels[1] for r in binary)
