from typing import Callable, Dict

_REGISTRY: Dict[str, Callable] = {}

def provider_name(name: str):
    """Register a telemetry client factory: `factory(api_key, http, base_url)`."""
    def deco(fn):
        _REGISTRY[name] = fn
        return fn
    return deco

def get_provider(name: str) -> Callable:
    return _REGISTRY[name]

def all_providers():
    return list(_REGISTRY.keys())


# registers the built-in client
from . import wirespeed  # noqa: E402,F401
