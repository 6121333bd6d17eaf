from mediagrab.sites.registry import get_handler, get_handler_by_name, get_handlers, normalize_url

__all__ = ["get_handler", "get_handler_by_name", "get_handlers", "normalize_url"]
