import os
import pathlib
import platform

from temporalio.client import Client
from temporalio.envconfig import ClientConfig

from minesweeper.config import Settings


# Connects to Temporal using the address and namespace from the settings,
# unless a profile is configured and the Temporal config file exists, in
# which case the profile's connection options win.
async def get_temporal_client(settings: Settings) -> Client:
    config_file_path = get_config_file_path()
    if settings.temporal_profile and config_file_path.is_file():
        connect_config = ClientConfig.load_client_connect_config(
            profile=settings.temporal_profile,
            config_file=str(config_file_path),
        )
        return await Client.connect(**connect_config)
    return await Client.connect(settings.temporal_address, namespace=settings.temporal_namespace)


# Location of temporal.toml for the current operating system.
def get_config_file_path() -> pathlib.Path:
    home = pathlib.Path.home()
    system = platform.system()

    if system == "Darwin":
        return home / "Library/Application Support/temporalio/temporal.toml"
    if system == "Windows":
        app_data = os.getenv("AppData")
        if app_data is None:
            raise RuntimeError("AppData environment variable not set")
        return pathlib.Path(app_data) / "temporalio/temporal.toml"

    xdg_config_home = os.getenv("XDG_CONFIG_HOME")
    base = pathlib.Path(xdg_config_home) if xdg_config_home else home / ".config"
    return base / "temporalio/temporal.toml"
