"""
Configuration management for tunebox
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

from tunebox.domain.library.metadata import DEFAULT_SUPPORTED_FORMATS

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 12345
DEFAULT_COMMAND_TIMEOUT = 15.0
# Extra time a client allows past the daemon's own command timeout
REQUEST_TIMEOUT_MARGIN = 5.0

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class DaemonConfig:
    """Configuration for the daemon endpoint."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT  # Max seconds a command may wait on the queue
    autoadvance_interval: float = 0.5  # How often to check for end of track

    @property
    def request_timeout(self) -> float:
        """Socket timeout for clients, longer than any reply the daemon can owe."""
        return self.command_timeout + REQUEST_TIMEOUT_MARGIN

    def validate(self) -> None:
        """Validate daemon configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if not isinstance(self.port, int) or not (1 <= self.port <= 65535):
            raise ValueError(f"Invalid port: {self.port!r}")
        if self.command_timeout <= 0:
            raise ValueError(f"command_timeout must be positive, got {self.command_timeout}")


@dataclass
class PlayerConfig:
    """Configuration for playback."""

    volume: int = 70
    supported_formats: List[str] = field(
        default_factory=lambda: list(DEFAULT_SUPPORTED_FORMATS)
    )
    output_device: Optional[str] = None  # sounddevice device name, None for default


@dataclass
class PlaylistConfig:
    """Configuration for playlist navigation."""

    wrap: bool = False  # Loop around at the ends instead of stopping


@dataclass
class UIConfig:
    """Configuration for the terminal interface."""

    refresh_interval: float = 0.8  # Seconds between status polls
    playlist_refresh_ticks: int = 3  # Fetch the playlist every N status polls
    volume_step: int = 5
    autostart_daemon: bool = True
    autostart_attempts: int = 6
    autostart_initial_delay: float = 0.1
    autostart_max_delay: float = 2.0


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # TRACE, DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL
    log_dir: Optional[str] = None  # Default: ~/.local/share/tunebox
    rotation: str = "10 MB"
    retention: int = 5  # Number of rotated files to keep
    console_output: bool = False  # Also log to stderr (daemon only)

    def validate(self) -> None:
        if self.level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.level}")


@dataclass
class Config:
    """Main configuration object."""

    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    playlist: PlaylistConfig = field(default_factory=PlaylistConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "tunebox"
    return Path.home() / ".config" / "tunebox"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Used during development so a checkout's config.toml wins over the
    user's global one.
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/tunebox (or ~/.config/tunebox)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path (logs, pid file)."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "tunebox"
    return Path.home() / ".local" / "share" / "tunebox"


def get_log_dir(config: Config) -> Path:
    if config.logging.log_dir:
        return Path(config.logging.log_dir).expanduser()
    return get_data_dir()


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return f"""
# tunebox configuration

[daemon]
# Loopback endpoint the daemon listens on
host = "{DEFAULT_HOST}"
port = {DEFAULT_PORT}

# Seconds a client request may wait for the daemon to process it
command_timeout = 15.0

# How often (seconds) the daemon checks whether the current track ended
autoadvance_interval = 0.5

[player]
# Initial volume (0-100)
volume = 70

# Audio file extensions accepted by "add"
supported_formats = {list(DEFAULT_SUPPORTED_FORMATS)!r}

# Output device name (omit for the system default)
# output_device = "pulse"

[playlist]
# Loop to the start/end instead of stopping at the boundary
wrap = false

[ui]
# Seconds between status refreshes
refresh_interval = 0.8

# Refresh the playlist every N status refreshes
playlist_refresh_ticks = 3

# Volume change per key press
volume_step = 5

# Start the daemon automatically when it isn't running
autostart_daemon = true
autostart_attempts = 6
autostart_initial_delay = 0.1
autostart_max_delay = 2.0

[logging]
# Log level (TRACE, DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL)
level = "INFO"

# Directory for daemon.log and tui.log (default: ~/.local/share/tunebox)
# log_dir = "/path/to/logs"

# Rotate when a log file reaches this size
rotation = "10 MB"

# Number of rotated log files to keep
retention = 5

# Also log to stderr when running the daemon in the foreground
console_output = false
""".strip()


def _section(toml_data: dict, name: str) -> dict:
    data = toml_data.get(name, {})
    return data if isinstance(data, dict) else {}


def parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML, validating each section."""
    config = Config()

    daemon_data = _section(toml_data, "daemon")
    config.daemon = DaemonConfig(
        host=daemon_data.get("host", config.daemon.host),
        port=daemon_data.get("port", config.daemon.port),
        command_timeout=daemon_data.get("command_timeout", config.daemon.command_timeout),
        autoadvance_interval=daemon_data.get(
            "autoadvance_interval", config.daemon.autoadvance_interval
        ),
    )
    try:
        config.daemon.validate()
    except ValueError as e:
        logger.warning(f"Invalid daemon configuration: {e}. Using defaults.")
        config.daemon = DaemonConfig()

    player_data = _section(toml_data, "player")
    config.player = PlayerConfig(
        volume=player_data.get("volume", config.player.volume),
        supported_formats=[
            fmt if fmt.startswith(".") else f".{fmt}"
            for fmt in player_data.get("supported_formats", config.player.supported_formats)
        ],
        output_device=player_data.get("output_device"),
    )

    playlist_data = _section(toml_data, "playlist")
    config.playlist = PlaylistConfig(wrap=bool(playlist_data.get("wrap", config.playlist.wrap)))

    ui_data = _section(toml_data, "ui")
    config.ui = UIConfig(
        refresh_interval=ui_data.get("refresh_interval", config.ui.refresh_interval),
        playlist_refresh_ticks=ui_data.get(
            "playlist_refresh_ticks", config.ui.playlist_refresh_ticks
        ),
        volume_step=ui_data.get("volume_step", config.ui.volume_step),
        autostart_daemon=ui_data.get("autostart_daemon", config.ui.autostart_daemon),
        autostart_attempts=ui_data.get("autostart_attempts", config.ui.autostart_attempts),
        autostart_initial_delay=ui_data.get(
            "autostart_initial_delay", config.ui.autostart_initial_delay
        ),
        autostart_max_delay=ui_data.get("autostart_max_delay", config.ui.autostart_max_delay),
    )

    logging_data = _section(toml_data, "logging")
    config.logging = LoggingConfig(
        level=str(logging_data.get("level", config.logging.level)).upper(),
        log_dir=logging_data.get("log_dir"),
        rotation=logging_data.get("rotation", config.logging.rotation),
        retention=logging_data.get("retention", config.logging.retention),
        console_output=logging_data.get("console_output", config.logging.console_output),
    )
    try:
        config.logging.validate()
    except ValueError as e:
        logger.warning(f"Invalid logging configuration: {e}. Using defaults.")
        config.logging = LoggingConfig()

    return config


def apply_env_overrides(config: Config) -> Config:
    """Apply TUNEBOX_* environment variables on top of file values."""
    host = os.environ.get("TUNEBOX_HOST")
    port = os.environ.get("TUNEBOX_PORT")
    level = os.environ.get("TUNEBOX_LOG_LEVEL")

    if host:
        config.daemon.host = host
    if port:
        try:
            config.daemon.port = int(port)
        except ValueError:
            logger.warning(f"Ignoring invalid TUNEBOX_PORT={port!r}")
    if level and level.upper() in VALID_LOG_LEVELS:
        config.logging.level = level.upper()

    return config


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - TUNEBOX_HOST
    - TUNEBOX_PORT
    - TUNEBOX_LOG_LEVEL
    """
    # Load .env file from config directory if it exists
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(create_default_config())
            logger.info(f"Created default configuration at: {config_path}")
        except OSError as e:
            logger.warning(f"Could not write default configuration: {e}")
        return apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.error(f"Error loading configuration from {config_path}: {e}")
        logger.info("Using default configuration.")
        return apply_env_overrides(Config())

    return apply_env_overrides(parse_config(toml_data))
