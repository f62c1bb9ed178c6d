"""Application configuration models with Pydantic validation.

All models are frozen: a running monitor keeps the snapshot it was given and
only observes a new configuration when one is published to it.
"""

from pydantic import BaseModel, ConfigDict, Field


class LogSyncConfig(BaseModel):
    """Terminal log capture, reconciliation and rotation settings."""

    model_config = ConfigDict(frozen=True)

    log_dir: str = Field(
        default="data/logs",
        description="Directory holding current and archived session logs",
    )
    naming: str = Field(
        default="dated",
        pattern="^(dated|current)$",
        description="Active log name: {session}_{YYYY-MM-DD}.log (dated) or {session}.log (current)",
    )
    max_log_size_bytes: int = Field(
        default=1024 * 1024,
        ge=1,
        description="Rotate the current log once it grows past this size",
    )
    retain_count: int = Field(
        default=20,
        ge=0,
        le=10000,
        description="Number of archived logs to keep per session",
    )
    max_sample_lines: int = Field(
        default=2000,
        ge=10,
        le=100000,
        description="Lines of pane scrollback captured per tick",
    )
    fallback_tail_lines: int = Field(
        default=500,
        ge=1,
        le=100000,
        description="Snapshot lines kept as the new baseline when no overlap is found",
    )
    seed_lines: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Snapshot lines carried into a freshly rotated log",
    )
    overlap_window: int = Field(
        default=200,
        ge=1,
        le=10000,
        description="Trailing log lines considered when searching for the overlap point",
    )
    min_overlap_lines: int = Field(
        default=2,
        ge=1,
        le=100,
        description="Shortest overlap accepted as a match",
    )
    match_mode: str = Field(
        default="fuzzy",
        pattern="^(fuzzy|exact)$",
        description="Line comparison: fuzzy ignores digit churn, exact compares bytes",
    )
    include_escapes: bool = Field(
        default=False,
        description="Capture colour/style escape sequences from the pane",
    )
    ansi_mirror: bool = Field(
        default=False,
        description="Also keep a full-replace colour mirror of the pane under ANSI_tmp/",
    )
    sample_timeout_seconds: int = Field(
        default=10,
        ge=1,
        le=120,
        description="Timeout for one pane capture",
    )


class IntervalConfig(BaseModel):
    """Tick interval policy configuration."""

    model_config = ConfigDict(frozen=True)

    policy: str = Field(
        default="constant",
        pattern="^(constant|idle|cpu)$",
        description="Interval strategy: constant, idle-aware or CPU-aware",
    )
    tick_interval_seconds: float = Field(
        default=2.0,
        ge=0.1,
        le=300,
        description="Interval for the constant policy and the active level",
    )
    idle_interval_seconds: float = Field(
        default=5.0,
        ge=0.1,
        le=600,
        description="Interval once the user has been idle for idle_threshold_seconds",
    )
    very_idle_interval_seconds: float = Field(
        default=30.0,
        ge=0.1,
        le=3600,
        description="Interval once the user has been idle for very_idle_threshold_seconds",
    )
    idle_threshold_seconds: int = Field(default=120, ge=1)
    very_idle_threshold_seconds: int = Field(default=360, ge=1)
    cpu_busy_percent: float = Field(
        default=10.0,
        ge=0,
        le=100,
        description="CPU load above which the active interval is used regardless of idle time",
    )


class SignalConfig(BaseModel):
    """Signal detection and pause-file configuration."""

    model_config = ConfigDict(frozen=True)

    usage_limit_enabled: bool = Field(
        default=True,
        description="Detect usage-limit messages in the pane tail",
    )
    tail_lines: int = Field(
        default=30,
        ge=1,
        le=1000,
        description="Snapshot lines scanned for signals",
    )
    state_dir: str = Field(
        default="data/state",
        description="Directory for the pause file and detection state files",
    )
    pause_file: str = Field(
        default="pause.json",
        description="Pause signal file name inside state_dir",
    )


class SessionConfig(BaseModel):
    """A terminal session to keep a log of."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Session name (used in log file names)")
    pane: str | None = Field(
        default=None,
        description="tmux target to capture (defaults to the session name)",
    )
    autostart: bool = Field(
        default=False,
        description="Start monitoring when the server starts",
    )

    @property
    def pane_ref(self) -> str:
        return self.pane or self.name


class AppConfig(BaseModel):
    """Root application configuration.

    Loaded from config.yaml and validated with Pydantic.
    """

    model_config = ConfigDict(frozen=True)

    log_sync: LogSyncConfig = Field(
        default_factory=LogSyncConfig,
        description="Log capture and rotation settings",
    )
    interval: IntervalConfig = Field(
        default_factory=IntervalConfig,
        description="Tick interval policy",
    )
    signals: SignalConfig = Field(
        default_factory=SignalConfig,
        description="Signal detection settings",
    )
    sessions: list[SessionConfig] = Field(
        default_factory=list,
        description="Configured sessions",
    )
    host: str = Field(default="127.0.0.1", description="Address for the Flask server")
    port: int = Field(
        default=5050,
        ge=1024,
        le=65535,
        description="Port for the Flask server",
    )
    debug: bool = Field(
        default=False,
        description="Enable Flask debug mode",
    )

    def get_session(self, name: str) -> SessionConfig | None:
        """Return the configured session with this name, if any."""
        for session in self.sessions:
            if session.name == name:
                return session
        return None
