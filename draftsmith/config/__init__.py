from .loader import get_required_env_keys, load_settings, validate_secret_env

__all__ = ["get_required_env_keys", "load_settings", "validate_secret_env"]
