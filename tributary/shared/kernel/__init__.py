from tributary.shared.kernel.runtime import configure_settings, get_settings

__all__ = [
    "configure_settings",
    "get_settings",
]
