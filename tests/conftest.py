import sys
import warnings
from pathlib import Path

import pytest
import torch

sys.path.insert(0, str(Path(__file__).parent))

from mocks.mock_backend import MockCKKSBackend

from ckks_brain import CKKSTrainingContext, Pattern, SchemeConfig

# One pattern costs about ten levels, so the mock chain is long.
MOCK_DEPTH = 400


def mock_config(mult_depth: int = MOCK_DEPTH) -> SchemeConfig:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return SchemeConfig(poly_mod_degree=8192, scale_bits=40, mult_depth=mult_depth, security_level=None)


@pytest.fixture
def scheme_config():
    return mock_config()


@pytest.fixture
def mock_backend(scheme_config):
    return MockCKKSBackend(scheme_config)


@pytest.fixture
def ctx(scheme_config, mock_backend):
    """Key-holding context on the mock backend."""
    return CKKSTrainingContext(scheme_config, backend=mock_backend)


@pytest.fixture
def public_ctx(ctx):
    return ctx.make_public()


@pytest.fixture
def op_log(mock_backend):
    return mock_backend.op_log


@pytest.fixture
def make_context():
    """Factory for key-holding mock contexts with a chosen depth."""
    def _make(mult_depth: int = MOCK_DEPTH) -> CKKSTrainingContext:
        config = mock_config(mult_depth)
        return CKKSTrainingContext(config, backend=MockCKKSBackend(config))
    return _make


@pytest.fixture
def generator():
    return torch.Generator().manual_seed(0)


@pytest.fixture
def xor_patterns(ctx):
    table = [
        ([0.0, 0.0], [0.0]),
        ([0.0, 1.0], [1.0]),
        ([1.0, 0.0], [1.0]),
        ([1.0, 1.0], [0.0]),
    ]
    return [
        Pattern(ctx.encrypt_vector(x), ctx.encrypt_vector(y), f"{int(x[0])} xor {int(x[1])}")
        for x, y in table
    ]


# =============================================================================
# Real SEAL Backend Fixtures
# =============================================================================

def _has_tenseal():
    """Check if TenSEAL is importable."""
    try:
        import tenseal  # noqa: F401
        return True
    except ImportError:
        return False


requires_seal = pytest.mark.skipif(
    not _has_tenseal(),
    reason="TenSEAL not installed"
)


@pytest.fixture
def seal_context():
    """Small real SEAL context: N=8192, two 40-bit levels."""
    if not _has_tenseal():
        pytest.skip("TenSEAL not installed")
    config = SchemeConfig(poly_mod_degree=8192, scale_bits=40, mult_depth=2)
    return CKKSTrainingContext(config, backend="seal")
