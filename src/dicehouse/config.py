"""
Configuration module for the dice settlement engine

Values live in upper-case dict sections on the Config class. Overrides set at
runtime or loaded from a JSON file sit on top of them and are what get()
returns first. Environment variables are read once, at import time.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_PROGRAM_ID = 'D1ceHouse1111111111111111111111111111111111'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class ConfigError(Exception):
    """Raised when configuration values are inconsistent or unreadable"""
    pass


def _env_int(name: str, default: int, floor: int = None) -> int:
    """Integer from the environment; a malformed value keeps the default"""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer, keeping {default}")
        return default
    if floor is not None and value < floor:
        logger.warning(f"Raising {name}={value} to minimum {floor}")
        return floor
    return value


class Config:
    """
    Engine settings

    Sections:
        PROGRAM     program identity, address seed tags, envelope position
        GAME_RULES  roll bounds, refund timeout
        FINANCIAL   bet bounds in lamports
        LEDGER      storage deposit constants of the host ledger
        LOGGING     handler settings for services.logger
    """

    PROGRAM = {
        'program_id': os.getenv('DICE_PROGRAM_ID', DEFAULT_PROGRAM_ID),
        'vault_seed': b'vault',
        'bet_seed': b'bet',
        'envelope_index': 0,
    }

    GAME_RULES = {
        'min_roll': 2,
        'max_roll': 96,
        'refund_timeout_slots': _env_int('DICE_REFUND_TIMEOUT_SLOTS', 1000, floor=1),
    }

    FINANCIAL = {
        'lamports_per_sol': 1_000_000_000,
        'min_bet': _env_int('DICE_MIN_BET_LAMPORTS', 10_000, floor=1),
        'max_bet': _env_int('DICE_MAX_BET_LAMPORTS', 100 * 1_000_000_000, floor=1),
    }

    # rent-exempt deposit = (overhead + space) * lamports_per_byte_year * years
    LEDGER = {
        'lamports_per_byte_year': 3480,
        'exemption_threshold_years': 2,
        'account_storage_overhead': 128,
        'account_discriminator_size': 8,
    }

    LOGGING = {
        'level': os.getenv('LOG_LEVEL', 'INFO'),
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'date_format': '%Y-%m-%d %H:%M:%S',
        'max_bytes': 5 * 1024 * 1024,
        'backup_count': 3,
    }

    _SECTIONS = ('program', 'game_rules', 'financial', 'ledger', 'logging')

    def __init__(self, config_file: Optional[Union[str, Path]] = None, validate: bool = True):
        """
        Args:
            config_file: JSON file of overrides to load
            validate: Run validate() once overrides are applied
        """
        self._lock = threading.RLock()
        self._overrides: dict[str, dict[str, Any]] = {}
        self._files: Optional[dict] = None
        self._logger = logger

        if config_file:
            self.load_from_file(config_file)
        if validate:
            self.validate()

    @property
    def FILES(self) -> dict:
        """Filesystem locations, resolved on first use"""
        with self._lock:
            if self._files is None:
                self._files = {
                    'log_dir': Path(os.getenv('DICE_LOG_DIR', str(Path.home() / '.dicehouse' / 'logs'))),
                }
            return self._files

    # ========== Access ==========

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Override if one is set, else the section default, else default"""
        with self._lock:
            overrides = self._overrides.get(section.lower(), {})
            if key in overrides:
                return overrides[key]

        values = getattr(self, section.upper(), None)
        if isinstance(values, dict):
            return values.get(key, default)
        return default

    def set(self, section: str, key: str, value: Any):
        with self._lock:
            self._overrides.setdefault(section.lower(), {})[key] = value

    def reset(self):
        """Forget every override"""
        with self._lock:
            self._overrides = {}

    def set_logger(self, log: logging.Logger):
        """Route config messages to the logger set up by services.logger"""
        self._logger = log

    def section(self, name: str) -> dict:
        """Effective values of one section (defaults merged with overrides)"""
        values = dict(getattr(self, name.upper()))
        with self._lock:
            values.update(self._overrides.get(name.lower(), {}))
        return values

    # ========== Validation ==========

    def validate(self):
        """
        Check the effective settings hang together

        Raises:
            ConfigError: Listing every problem found
        """
        from .core.outcome import OUTCOME_RANGE
        from .models.pubkey import Pubkey

        problems = []

        try:
            Pubkey.from_string(self.get('program', 'program_id'))
        except (TypeError, ValueError) as e:
            problems.append(f"program_id is not a 32-byte base58 key: {e}")

        min_roll = self.get('game_rules', 'min_roll')
        max_roll = self.get('game_rules', 'max_roll')
        if not 1 <= min_roll < max_roll < OUTCOME_RANGE:
            problems.append(
                f"roll bounds must satisfy 1 <= min_roll < max_roll < {OUTCOME_RANGE}, "
                f"got {min_roll}..{max_roll}"
            )
        if self.get('game_rules', 'refund_timeout_slots') < 1:
            problems.append("refund_timeout_slots must be at least 1")

        min_bet = self.get('financial', 'min_bet')
        max_bet = self.get('financial', 'max_bet')
        if not 0 < min_bet < max_bet < 2**64:
            problems.append(f"bet bounds must satisfy 0 < min_bet < max_bet < 2**64, got {min_bet}..{max_bet}")

        if str(self.get('logging', 'level')).upper() not in LOG_LEVELS:
            problems.append(f"unknown log level {self.get('logging', 'level')!r}")

        if problems:
            raise ConfigError("Invalid configuration:\n  " + "\n  ".join(problems))

    # ========== Persistence ==========

    def load_from_file(self, filepath: Union[str, Path]):
        """
        Replace overrides with the contents of a JSON file

        A missing file is logged and ignored.

        Raises:
            ConfigError: If the file cannot be read or is not a JSON object of sections
        """
        filepath = Path(filepath)
        if not filepath.exists():
            self._logger.warning(f"Config file not found: {filepath}")
            return

        try:
            raw = json.loads(filepath.read_text())
        except (OSError, json.JSONDecodeError) as e:
            self._logger.error(f"Cannot load config {filepath}: {e}")
            raise ConfigError(f"Cannot load config {filepath}: {e}")

        if not isinstance(raw, dict):
            raise ConfigError(f"Config {filepath} must hold a JSON object")

        overrides = {
            section.lower(): {key: _decode_value(value) for key, value in values.items()}
            for section, values in raw.items()
            if isinstance(values, dict) and section.lower() in self._SECTIONS
        }
        with self._lock:
            self._overrides = overrides
        self._logger.info(f"Loaded configuration overrides from {filepath}")

    def save_to_file(self, filepath: Union[str, Path]):
        """Write the effective settings of every section as JSON"""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        filepath.write_text(json.dumps(self.to_dict(), indent=2))
        self._logger.info(f"Saved configuration to {filepath}")

    def to_dict(self) -> dict:
        """JSON-safe snapshot of the effective settings"""
        data = {
            name: {key: _encode_value(value) for key, value in self.section(name).items()}
            for name in self._SECTIONS
        }
        data['files'] = {key: str(value) for key, value in self.FILES.items()}
        return data


def _encode_value(value: Any) -> Any:
    if isinstance(value, bytes):
        return {'__bytes__': value.hex()}
    return value


def _decode_value(value: Any) -> Any:
    if isinstance(value, dict) and '__bytes__' in value:
        return bytes.fromhex(value['__bytes__'])
    return value


# Global configuration instance. Importing it creates no directories and runs
# no validation; applications call config.validate() when they start.
config = Config(validate=False)
