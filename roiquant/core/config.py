"""
Configuration management for the segmentation and quantification engine.
Dataclass configurations per concern plus a flat, multi-valued parameter dictionary.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Iterable
from pathlib import Path
import json
import logging
import re
import yaml


logger = logging.getLogger(__name__)


@dataclass
class MorphologyConfig:
    """Configuration for binary morphology filters."""
    
    # Default structuring element: hypercube over these dimensions
    dimensions: List[str] = field(default_factory=lambda: ['X', 'Y'])
    size: int = 3  # Must be odd


@dataclass
class ThresholdConfig:
    """Configuration for maximum-separability thresholding."""
    
    binary: bool = True  # False keeps intensities above threshold
    
    # Local (windowed) thresholding
    window_size: int = 64  # pixels, square XY window
    overlap: float = 0.5  # fraction of window shared with the next one


@dataclass
class SizeFilterConfig:
    """Configuration for size-based region removal."""
    
    min_size: int = 5  # pixels, inclusive
    max_size: int = 50  # pixels, inclusive


@dataclass
class ClusteringConfig:
    """Configuration for Voronoi-based object clustering."""
    
    max_iterations: int = 10
    gaussian_width_fraction: float = 0.2  # Gaussian width as a fraction of image width
    smoothing_value: float = 4095.0  # Value assigned to foreground before smoothing


@dataclass
class IOConfig:
    """Configuration for image reading and writing."""
    
    supported_formats: List[str] = field(default_factory=lambda: ['.tif', '.tiff'])
    max_connections: int = 10  # concurrent remote fetches


@dataclass
class AnalysisConfig:
    """Main configuration class combining all concerns."""
    
    morphology: MorphologyConfig = field(default_factory=MorphologyConfig)
    threshold: ThresholdConfig = field(default_factory=ThresholdConfig)
    size_filter: SizeFilterConfig = field(default_factory=SizeFilterConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    io: IOConfig = field(default_factory=IOConfig)
    
    # Logging
    verbose: bool = True
    log_level: str = 'INFO'
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary.
        
        Returns:
            Dict[str, Any]: Configuration as dictionary.
        """
        def config_to_dict(config_obj):
            """Recursively convert dataclass to dictionary."""
            result = {}
            for field_name, field_value in config_obj.__dict__.items():
                if hasattr(field_value, '__dataclass_fields__'):
                    result[field_name] = config_to_dict(field_value)
                elif isinstance(field_value, Path):
                    result[field_name] = str(field_value)
                elif isinstance(field_value, (list, tuple)):
                    result[field_name] = list(field_value)
                else:
                    result[field_name] = field_value
            return result
        
        return config_to_dict(self)
    
    def save(self, filepath: Path, format: str = 'auto') -> None:
        """Save configuration to file.
        
        Args:
            filepath: Path to save configuration.
            format: File format ('json', 'yaml', or 'auto' to detect from extension).
        """
        filepath = Path(filepath)
        
        if format == 'auto':
            format = 'yaml' if filepath.suffix.lower() in ['.yml', '.yaml'] else 'json'
        
        config_dict = self.to_dict()
        
        with open(filepath, 'w') as f:
            if format == 'yaml':
                yaml.dump(config_dict, f, default_flow_style=False, indent=2)
            else:
                json.dump(config_dict, f, indent=2)
    
    @classmethod
    def load(cls, filepath: Path) -> 'AnalysisConfig':
        """Load configuration from JSON or YAML file.
        
        Args:
            filepath: Path to configuration file.
            
        Returns:
            AnalysisConfig: Loaded configuration object.
        """
        filepath = Path(filepath)
        
        with open(filepath, 'r') as f:
            if filepath.suffix.lower() in ['.yml', '.yaml']:
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
        
        return cls.from_dict(data)
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisConfig':
        """Build a configuration from a (possibly partial) dictionary."""
        sections = {
            'morphology': MorphologyConfig,
            'threshold': ThresholdConfig,
            'size_filter': SizeFilterConfig,
            'clustering': ClusteringConfig,
            'io': IOConfig,
        }
        config = cls()
        for name, section_class in sections.items():
            if name in data and isinstance(data[name], dict):
                known = section_class.__dataclass_fields__
                unknown = set(data[name]) - set(known)
                if unknown:
                    logger.warning(f"Ignoring unknown {name} settings: {sorted(unknown)}")
                values = {k: v for k, v in data[name].items() if k in known}
                setattr(config, name, section_class(**values))
        
        config.verbose = data.get('verbose', True)
        config.log_level = data.get('log_level', 'INFO')
        return config


# =============================================================================
# Flat parameter dictionary
# =============================================================================

_LEGAL_ENTRY = re.compile(r'^[A-Za-z0-9_\-./\\: ]+=[A-Za-z0-9_\-./\\:, ]*$')


class ParameterDictionary:
    """String-keyed parameters with typed accessors and multi-valued keys.
    
    Adding a value to an existing key appends rather than overwrites, so a
    parameter may hold several values (e.g. one per channel). ``set_value``
    replaces all values of a key.
    """
    
    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, List[str]] = {}
        for key, value in (values or {}).items():
            if isinstance(value, (list, tuple)):
                for item in value:
                    self.add_value(key, item)
            else:
                self.add_value(key, value)
    
    @staticmethod
    def _normalize(value: Any) -> str:
        if isinstance(value, bool):
            return 'true' if value else 'false'
        text = str(value).strip()
        if text.lower() in ('true', 'false'):
            return text.lower()
        return text
    
    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    
    def add_value(self, key: str, value: Any) -> None:
        self._values.setdefault(key, []).append(self._normalize(value))
    
    def set_value(self, key: str, value: Any) -> None:
        self._values[key] = [self._normalize(value)]
    
    def add_if_not_set(self, key: str, value: Any) -> None:
        """Set ``key`` to ``value`` only if it has no value yet."""
        if key not in self._values:
            self.set_value(key, value)
    
    def remove(self, key: str) -> None:
        self._values.pop(key, None)
    
    def discard_illegal_arguments(self, legal_keys: Iterable[str]) -> List[str]:
        """Remove every key not in ``legal_keys``.
        
        Returns:
            List[str]: The keys that were discarded.
        """
        legal = set(legal_keys)
        discarded = [key for key in self._values if key not in legal]
        for key in discarded:
            logger.warning(f"Discarding unrecognized parameter '{key}'")
            del self._values[key]
        return discarded
    
    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------
    
    def has_key(self, key: str) -> bool:
        return key in self._values
    
    def has_key_and_true(self, key: str) -> bool:
        return self.has_key(key) and self.get_bool(key)
    
    def keys(self) -> List[str]:
        return list(self._values)
    
    def value_count(self, key: str) -> int:
        return len(self._values.get(key, []))
    
    def get_value(self, key: str, index: int = 0) -> str:
        """Return the ``index``-th value of ``key``.
        
        Raises:
            KeyError: If the key is missing.
            IndexError: If the key has fewer than ``index + 1`` values.
        """
        if key not in self._values:
            raise KeyError(f"No parameter named '{key}'")
        return self._values[key][index]
    
    def get_values(self, key: str) -> List[str]:
        return list(self._values.get(key, []))
    
    def get_int(self, key: str, index: int = 0) -> int:
        return int(float(self.get_value(key, index)))
    
    def get_float(self, key: str, index: int = 0) -> float:
        return float(self.get_value(key, index))
    
    def get_bool(self, key: str, index: int = 0) -> bool:
        return self.get_value(key, index).lower() in ('true', '1', 'yes')
    
    def to_dict(self) -> Dict[str, Any]:
        """Export as a dictionary; multi-valued keys become lists."""
        return {k: (v[0] if len(v) == 1 else list(v)) for k, v in self._values.items()}
    
    def __contains__(self, key: str) -> bool:
        return key in self._values
    
    def __len__(self) -> int:
        return len(self._values)
    
    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------
    
    def parse_parameter_line(self, line: str) -> bool:
        """Parse a single ``key=value`` entry and add it.
        
        Blank lines and ``#`` comments are ignored. Malformed entries are logged
        and skipped; they never raise.
        
        Args:
            line: The entry to parse.
            
        Returns:
            bool: True if a parameter was added.
        """
        entry = line.strip()
        if not entry or entry.startswith('#'):
            return False
        
        if not _LEGAL_ENTRY.match(entry):
            logger.warning(f"Skipping malformed parameter entry: '{entry}'")
            return False
        
        key, value = entry.split('=', 1)
        key = key.strip()
        if not key:
            logger.warning(f"Skipping parameter entry with empty key: '{entry}'")
            return False
        
        for item in value.split(','):
            self.add_value(key, item)
        return True
    
    def parse_parameter_lines(self, lines: Iterable[str]) -> int:
        """Parse several entries. Returns the number of parameters added."""
        return sum(1 for line in lines if self.parse_parameter_line(line))
    
    @classmethod
    def from_yaml(cls, filepath: Path) -> 'ParameterDictionary':
        """Load a flat YAML mapping. List values become multi-valued keys."""
        with open(Path(filepath), 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Parameter file must contain a mapping: {filepath}")
        return cls(data)
    
    def __repr__(self) -> str:
        return f"ParameterDictionary({self.to_dict()})"
