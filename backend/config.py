"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide typed, immutable config objects

Non-responsibilities:
- No orchestration logic
- No protocol constants (see spec.py)
- No runtime mutation, no persistence
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from spec import (
    DEFAULT_CUTSCENE_ONLINE_STATUS_ID,
    DEFAULT_OBS_ADDRESS,
    DEFAULT_STOP_RECORD_DELAY_S,
)


def _flag(env: Mapping[str, str], name: str, default: str = "0") -> bool:
    return env.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class AutoRecordConfig:
    """
    Read-only flags consumed by the orchestrator reducer.

    All triggers default to off: nothing is recorded until the user
    opts in.
    """

    # ------------------------------------------------------------------
    # Combat triggers
    # ------------------------------------------------------------------

    start_record_on_combat: bool = False
    stop_record_on_combat: bool = False
    stop_record_on_combat_delay_s: int = DEFAULT_STOP_RECORD_DELAY_S
    cancel_stop_on_resume: bool = False
    dont_stop_in_cutscene: bool = False
    cutscene_online_status_id: int = DEFAULT_CUTSCENE_ONLINE_STATUS_ID

    # ------------------------------------------------------------------
    # Countdown trigger
    # ------------------------------------------------------------------

    start_record_on_countdown: bool = False

    # ------------------------------------------------------------------
    # Replay buffer triggers
    # ------------------------------------------------------------------

    start_replay_buffer_on_duty_entrance: bool = False
    stop_replay_buffer_on_duty_exit: bool = False
    trigger_replay_buffer_on_wipe: bool = False

    # ------------------------------------------------------------------
    # Recording location
    # ------------------------------------------------------------------

    zone_as_suffix: bool = False
    include_territory: bool = False
    record_directory: str = ""
    filename_format: str = ""

    @staticmethod
    def load_from_env(env: Mapping[str, str] | None = None) -> AutoRecordConfig:
        """
        Load trigger flags from environment variables.

        Raises:
            ValueError if a numeric variable is malformed.
        """
        env = os.environ if env is None else env
        return AutoRecordConfig(
            start_record_on_combat=_flag(env, "START_RECORD_ON_COMBAT"),
            stop_record_on_combat=_flag(env, "STOP_RECORD_ON_COMBAT"),
            stop_record_on_combat_delay_s=_int(
                env, "STOP_RECORD_ON_COMBAT_DELAY_S", DEFAULT_STOP_RECORD_DELAY_S
            ),
            cancel_stop_on_resume=_flag(env, "CANCEL_STOP_ON_RESUME"),
            dont_stop_in_cutscene=_flag(env, "DONT_STOP_IN_CUTSCENE"),
            cutscene_online_status_id=_int(
                env, "CUTSCENE_ONLINE_STATUS_ID", DEFAULT_CUTSCENE_ONLINE_STATUS_ID
            ),
            start_record_on_countdown=_flag(env, "START_RECORD_ON_COUNTDOWN"),
            start_replay_buffer_on_duty_entrance=_flag(
                env, "START_REPLAY_BUFFER_ON_DUTY_ENTRANCE"
            ),
            stop_replay_buffer_on_duty_exit=_flag(env, "STOP_REPLAY_BUFFER_ON_DUTY_EXIT"),
            trigger_replay_buffer_on_wipe=_flag(env, "TRIGGER_REPLAY_BUFFER_ON_WIPE"),
            zone_as_suffix=_flag(env, "ZONE_AS_SUFFIX"),
            include_territory=_flag(env, "INCLUDE_TERRITORY"),
            record_directory=env.get("RECORD_DIRECTORY", ""),
            filename_format=env.get("FILENAME_FORMAT", ""),
        )


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the server, the OBS service and the runtime.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = 8000

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # OBS connection
    # ------------------------------------------------------------------

    obs_address: str = DEFAULT_OBS_ADDRESS
    obs_password: str = ""

    # Connect at startup when a password is configured
    auto_connect: bool = True

    # ------------------------------------------------------------------
    # Orchestrator triggers
    # ------------------------------------------------------------------

    auto_record: AutoRecordConfig = field(default_factory=AutoRecordConfig)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env(env: Mapping[str, str] | None = None) -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is malformed.
        """
        env = os.environ if env is None else env
        return AppConfig(
            env=env.get("ENV", "dev"),
            log_level=env.get("LOG_LEVEL", "INFO"),

            host=env.get("HOST", "127.0.0.1"),
            port=_int(env, "PORT", 8000),

            enable_json_logs=env.get("ENABLE_JSON_LOGS", "1") == "1",

            obs_address=env.get("OBS_ADDRESS", DEFAULT_OBS_ADDRESS),
            obs_password=env.get("OBS_PASSWORD", ""),
            auto_connect=_flag(env, "AUTO_CONNECT", "1"),

            auto_record=AutoRecordConfig.load_from_env(env),
        )
