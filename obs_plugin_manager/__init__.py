"""OBS Plugin Manager - install, update and back up OBS Studio plugins."""

__app_name__ = "obs-plugins"
__version__ = "1.0.0"
