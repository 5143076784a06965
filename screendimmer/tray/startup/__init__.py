from .bootstrap import acquire_single_instance_or_exit, configure_logging, log_startup_diagnostics_if_debug

__all__ = [
    "acquire_single_instance_or_exit",
    "configure_logging",
    "log_startup_diagnostics_if_debug",
]
