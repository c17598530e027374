"""Default configuration parameters for the leave app."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SchedulerParams:
    """Periodic sweep parameters."""
    sweep_interval_seconds: float = 60.0     # One tick per minute
    batch_size: int = 100                    # Max due records per sweep
    drain_timeout_seconds: float = 30.0      # Wait for in-flight sweeps on shutdown


@dataclass(frozen=True)
class DirectoryParams:
    """Directory service (Discord guild) parameters."""
    guild_id: str = ""
    marker_role_id: str = ""
    api_base_url: str = "https://discord.com/api/v10"
    timeout_seconds: float = 10.0
    token_env: str = "DISCORD_BOT_TOKEN"     # Token is only read from the environment


@dataclass(frozen=True)
class TimeParams:
    """Reference timezone and wall-clock formats."""
    timezone: str = "Europe/Vilnius"
    input_format: str = "%Y/%m/%d %H:%M"
    display_format: str = "%Y/%m/%d %H:%M"


@dataclass(frozen=True)
class StoreParams:
    """Persistence parameters."""
    db_path: str = "leave_periods.db"


@dataclass(frozen=True)
class MessageParams:
    """Notification texts; ``{reason}`` and ``{end_time}`` are substituted."""
    start_template: str = (
        "\U0001F44B Your holiday has officially started! Enjoy your break. "
        "Reason: {reason}. It ends on {end_time}."
    )
    end_template: str = (
        "\U0001F389 Your holiday has ended! Welcome back. "
        "If you still need time off, please re-apply."
    )


@dataclass(frozen=True)
class LoggingParams:
    """Logging output parameters."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class LeaveAppConfig:
    """Complete application configuration."""
    scheduler: SchedulerParams
    directory: DirectoryParams
    time: TimeParams
    store: StoreParams
    messages: MessageParams
    logging: LoggingParams


def get_default_config() -> LeaveAppConfig:
    """Get the default configuration instance."""
    return LeaveAppConfig(
        scheduler=SchedulerParams(),
        directory=DirectoryParams(),
        time=TimeParams(),
        store=StoreParams(),
        messages=MessageParams(),
        logging=LoggingParams(),
    )
