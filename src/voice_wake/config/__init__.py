from .settings import WakeServiceConfig, create_example_env_file, load_config, setup_logging

__all__ = ["WakeServiceConfig", "create_example_env_file", "load_config", "setup_logging"]
