import pytest

from tensorlab.config import EngineConfig
from tensorlab.tensor_ops import (
    TensorBackend,
    get_default_backend,
    make_backend,
    set_default_backend,
)

_BACKENDS = {}


def _get_backend(name: str) -> TensorBackend:
    if name not in _BACKENDS:
        _BACKENDS[name] = make_backend(EngineConfig(backend=name))
    return _BACKENDS[name]


@pytest.fixture(params=["simple", "fast"])
def backend(request):
    return _get_backend(request.param)


@pytest.fixture(scope="session")
def simple_backend():
    return _get_backend("simple")


@pytest.fixture(params=["simple", "fast"])
def default_backend(request):
    # Tensor operators and package-level functions dispatch to the default backend.
    previous = get_default_backend()
    chosen = _get_backend(request.param)
    set_default_backend(chosen)
    yield chosen
    set_default_backend(previous)
