from .events import PowerEvent


__all__ = ["PowerEvent"]
