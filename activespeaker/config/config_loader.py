"""Configuration loader for ActiveSpeaker"""

import logging
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
import os


logger = logging.getLogger(__name__)

# Repository root, used when the process is not started from it
_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Config:
    """Configuration manager for ActiveSpeaker"""
    
    def __init__(self, config_path: Optional[str] = None):
        explicit = config_path or os.getenv('ACTIVESPEAKER_CONFIG')
        if explicit:
            self.config_path = Path(explicit)
            if not self.config_path.exists():
                raise FileNotFoundError(f"Config file not found: {self.config_path}")
        else:
            self.config_path = self._find_default()
        
        self._config = self._load_config()
    
    @staticmethod
    def _find_default() -> Optional[Path]:
        """Locate the environment-specific config, falling back to config.yaml"""
        env = os.getenv('ACTIVESPEAKER_ENV', 'development')
        for base in (Path('.'), _PROJECT_ROOT):
            # Try environment-specific config first, fall back to default
            for name in (f"config.{env}.yaml", "config.yaml"):
                candidate = base / "config" / name
                if candidate.exists():
                    return candidate
        return None
    
    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        if self.config_path is None:
            logger.warning("No config file found, using built-in defaults")
            return {}
        
        with open(self.config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    
    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation
        
        Args:
            key: Configuration key in dot notation (e.g., 'fusion.score_floor')
            default: Default value if key not found
            
        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._config
        
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        
        return value if value is not None else default
    
    def __getitem__(self, key: str) -> Any:
        """Allow dictionary-style access"""
        return self.get(key)
    
    def validate(self) -> None:
        """Validate configuration values"""
        smoothing = self.get('tracking.smoothing')
        if smoothing is not None and not 0 <= smoothing <= 1:
            raise ValueError(f"Invalid tracking.smoothing: {smoothing}, must be in [0, 1]")
        
        floor = self.get('fusion.score_floor')
        if floor is not None and not 0 <= floor <= 1:
            raise ValueError(f"Invalid fusion.score_floor: {floor}, must be in [0, 1]")
        
        for key in ('tracking.spatial_gate', 'tracking.temporal_gate',
                    'fusion.sample_interval', 'fusion.max_time_delta',
                    'fusion.affinity_normalization', 'audio.poll_interval'):
            value = self.get(key)
            if value is not None and value <= 0:
                raise ValueError(f"Invalid {key}: {value}, must be positive")
        
        weights = self.get('fusion.weights')
        if weights:
            total = sum(weights.values())
            if abs(total - 1.0) > 1e-6:
                raise ValueError(f"Fusion weights must sum to 1.0, got {total}")


# Global config instance
config = Config()
