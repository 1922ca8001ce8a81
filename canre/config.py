"""
Configuration management for the CAN reverse-engineering toolkit.

This module provides centralized configuration management, supporting:
- Loading from JSON config files
- Environment variable overrides
- Validation and type safety for all settings
- The single place where logging is configured
"""

import os
import json
import logging
from dataclasses import dataclass, asdict
from typing import Optional, List
from pathlib import Path

from canre.constants import (
    OPTIMIZED_SAMPLE_LIMIT, MIN_MESSAGE_COUNT_DEFAULT, MAX_WORKERS_DEFAULT,
    EXTRACTION_FRAME_LIMIT, CROSS_MESSAGE_SIGNAL_LIMIT,
    SIGNIFICANCE_CORRELATION, SIGNIFICANCE_PVALUE,
    MIN_CLUSTER_SIZE_DEFAULT, CLUSTER_CUT_RATIO,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'
VALID_LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
VALID_POLICIES = {'quick', 'full'}


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the toolkit.

    Args:
        level: Logging level name. If None, uses CANRE_LOG_LEVEL or LOG_LEVEL
               environment variables, defaulting to 'INFO'.
    """
    level_name = (level or os.environ.get('CANRE_LOG_LEVEL') or os.environ.get('LOG_LEVEL') or 'INFO').upper()
    if level_name not in VALID_LOG_LEVELS:
        level_name = 'INFO'
    logging.basicConfig(level=getattr(logging, level_name), format=LOG_FORMAT)
    logging.getLogger().setLevel(getattr(logging, level_name))


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class DetectionSettings:
    """Signal detection settings.

    Attributes:
        policy: Detection policy name ('quick' or 'full')
        optimized: Use the bounded quick scan (frame sampling, first 6 start bytes)
        sample_limit: Maximum frames sampled per id in optimized mode
        min_message_count: Ids need more than this many frames to be scanned
        max_messages: Only scan this many of the most frequent ids (None = all)
    """
    policy: str = 'quick'
    optimized: bool = False
    sample_limit: int = OPTIMIZED_SAMPLE_LIMIT
    min_message_count: int = MIN_MESSAGE_COUNT_DEFAULT
    max_messages: Optional[int] = None

    def validate(self) -> List[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors = []
        if not isinstance(self.policy, str) or self.policy not in VALID_POLICIES:
            errors.append(f"Detection policy must be one of {sorted(VALID_POLICIES)}")
        if not isinstance(self.optimized, bool):
            errors.append("Optimized must be true or false")
        if not isinstance(self.sample_limit, int) or self.sample_limit < 2:
            errors.append("Sample limit must be an integer >= 2")
        if not isinstance(self.min_message_count, int) or self.min_message_count < 0:
            errors.append("Minimum message count must be a non-negative integer")
        if self.max_messages is not None and (not isinstance(self.max_messages, int) or self.max_messages < 1):
            errors.append("Max messages must be a positive integer or None")
        return errors


@dataclass
class CorrelationSettings:
    """Correlation engine settings.

    Attributes:
        extraction_limit: Frames extracted per signal
        cross_message_limit: Signals considered by the cross-message pass
        significance_correlation: |r| above which a pair may be significant
        significance_pvalue: p-value below which a pair may be significant
    """
    extraction_limit: int = EXTRACTION_FRAME_LIMIT
    cross_message_limit: int = CROSS_MESSAGE_SIGNAL_LIMIT
    significance_correlation: float = SIGNIFICANCE_CORRELATION
    significance_pvalue: float = SIGNIFICANCE_PVALUE

    def validate(self) -> List[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors = []
        if not isinstance(self.extraction_limit, int) or self.extraction_limit < 10:
            errors.append("Extraction limit must be an integer >= 10")
        if not isinstance(self.cross_message_limit, int) or self.cross_message_limit < 2:
            errors.append("Cross-message limit must be an integer >= 2")
        if not _is_number(self.significance_correlation) or not 0.0 <= self.significance_correlation <= 1.0:
            errors.append("Significance correlation must be within [0, 1]")
        if not _is_number(self.significance_pvalue) or not 0.0 < self.significance_pvalue <= 1.0:
            errors.append("Significance p-value must be within (0, 1]")
        return errors


@dataclass
class ClusteringSettings:
    """Semantic clustering settings.

    Attributes:
        min_cluster_size: Minimum members for a merge to become a cluster
        cut_ratio: Fraction of the maximum merge distance used as cut threshold
    """
    min_cluster_size: int = MIN_CLUSTER_SIZE_DEFAULT
    cut_ratio: float = CLUSTER_CUT_RATIO

    def validate(self) -> List[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors = []
        if not isinstance(self.min_cluster_size, int) or self.min_cluster_size < 1:
            errors.append("Minimum cluster size must be an integer >= 1")
        if not _is_number(self.cut_ratio) or not 0.0 <= self.cut_ratio <= 1.0:
            errors.append("Cut ratio must be within [0, 1]")
        return errors


@dataclass
class AppSettings:
    """Application-level configuration settings.

    Attributes:
        log_level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
        workers: Worker threads used for per-id stages
        output_dir: Directory for generated DBC and report files (None = next to capture)
    """
    log_level: str = 'INFO'
    workers: int = MAX_WORKERS_DEFAULT
    output_dir: Optional[str] = None

    def validate(self) -> List[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors = []
        if not isinstance(self.log_level, str) or self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"Log level must be one of {VALID_LOG_LEVELS}")
        if not isinstance(self.workers, int) or self.workers < 1:
            errors.append("Workers must be an integer >= 1")
        if self.output_dir is not None and not isinstance(self.output_dir, str):
            errors.append("Output directory must be a path string or None")
        return errors


class ConfigManager:
    """Centralized configuration manager.

    Sources are applied with priority:
    1. JSON config file (highest priority)
    2. Environment variables
    3. Default values (lowest priority)

    Attributes:
        detection: Signal detection configuration
        correlation: Correlation engine configuration
        clustering: Clustering configuration
        app_settings: Application-level configuration
    """

    def __init__(self, config_file: Optional[str] = None):
        """Initialize ConfigManager.

        Args:
            config_file: Optional path to JSON config file. If None, tries
                        ~/.canre/config.json.
        """
        self.detection = DetectionSettings()
        self.correlation = CorrelationSettings()
        self.clustering = ClusteringSettings()
        self.app_settings = AppSettings()
        self._config_file: Optional[str] = config_file

        self._load_from_environment()
        if config_file:
            self._load_from_file(config_file)
        else:
            self._load_from_default_locations()

        errors = self.validate()
        if errors:
            logger.warning(f"Configuration validation errors: {errors}")
            self._reset_invalid_sections()

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        log_level = os.environ.get('CANRE_LOG_LEVEL') or os.environ.get('LOG_LEVEL')
        if log_level:
            self.app_settings.log_level = log_level.upper()

        workers = os.environ.get('CANRE_WORKERS')
        if workers:
            try:
                self.app_settings.workers = int(workers)
            except (ValueError, TypeError):
                logger.warning(f"Invalid CANRE_WORKERS environment variable: {workers}")

        policy = os.environ.get('CANRE_POLICY')
        if policy:
            self.detection.policy = policy.lower()

    def _load_from_file(self, file_path: str) -> bool:
        """Load configuration from JSON file.

        Args:
            file_path: Path to JSON config file

        Returns:
            True if loaded successfully, False otherwise
        """
        if not os.path.exists(file_path):
            logger.debug(f"Config file not found: {file_path}")
            return False

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse config file {file_path}: {e}")
            return False
        except OSError as e:
            logger.error(f"Failed to read config file {file_path}: {e}", exc_info=True)
            return False
        if not isinstance(data, dict):
            logger.error(f"Config file {file_path} must contain a JSON object")
            return False

        sections = (
            ('detection', self.detection),
            ('correlation', self.correlation),
            ('clustering', self.clustering),
            ('app_settings', self.app_settings),
        )
        for section_name, section in sections:
            section_data = data.get(section_name)
            if not isinstance(section_data, dict):
                continue
            for key, value in section_data.items():
                if not hasattr(section, key):
                    logger.warning(f"Unknown setting in config: {section_name}.{key}")
                    continue
                setattr(section, key, value)

        if isinstance(self.app_settings.log_level, str):
            self.app_settings.log_level = self.app_settings.log_level.upper()

        self._config_file = file_path
        logger.info(f"Loaded configuration from {file_path}")
        return True

    def _load_from_default_locations(self) -> None:
        """Try loading from the default user config location."""
        user_config_file = Path.home() / '.canre' / 'config.json'
        if user_config_file.exists():
            self._load_from_file(str(user_config_file))

    def _reset_invalid_sections(self) -> None:
        """Fall back to defaults for any section that failed validation."""
        if self.detection.validate():
            self.detection = DetectionSettings()
        if self.correlation.validate():
            self.correlation = CorrelationSettings()
        if self.clustering.validate():
            self.clustering = ClusteringSettings()
        if self.app_settings.validate():
            self.app_settings = AppSettings()

    def save_to_file(self, file_path: Optional[str] = None) -> bool:
        """Save current configuration to JSON file.

        Args:
            file_path: Optional path to save to. If None, uses the loaded file or
                       ~/.canre/config.json.

        Returns:
            True if saved successfully, False otherwise
        """
        save_path = file_path or self._config_file
        if not save_path:
            save_path = str(Path.home() / '.canre' / 'config.json')

        data = {
            'detection': asdict(self.detection),
            'correlation': asdict(self.correlation),
            'clustering': asdict(self.clustering),
            'app_settings': asdict(self.app_settings),
        }
        for section in data.values():
            for key in list(section.keys()):
                if section[key] is None:
                    del section[key]

        try:
            directory = os.path.dirname(save_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(save_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save config file {save_path}: {e}", exc_info=True)
            return False

        self._config_file = save_path
        logger.info(f"Saved configuration to {save_path}")
        return True

    def validate(self) -> List[str]:
        """Validate all configuration settings.

        Returns:
            List of error messages (empty if all valid)
        """
        errors = []
        errors.extend(self.detection.validate())
        errors.extend(self.correlation.validate())
        errors.extend(self.clustering.validate())
        errors.extend(self.app_settings.validate())
        return errors
