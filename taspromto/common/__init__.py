from .config import ConfigError, Settings, get_settings, parse_name_mapping

__all__ = ["ConfigError", "Settings", "get_settings", "parse_name_mapping"]
