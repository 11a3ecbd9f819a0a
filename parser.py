import yaml
import json
from typing import Any, Dict, Iterable, List, Optional


class ConfigParser:
    """Loads a step's config block from YAML or JSON.

    The file may hold the block at the top level or under a section key
    (``build``, ``helm``) when several steps share one file.
    """

    def __init__(self, section: str = "build"):
        self.section = section

    def parse_yaml(self, file_path: str) -> Dict[str, Any]:
        """Parse YAML configuration file into a config mapping"""
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        return self._parse_dict(data, file_path)

    def parse_json(self, file_path: str) -> Dict[str, Any]:
        """Parse JSON configuration file into a config mapping"""
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return self._parse_dict(data, file_path)

    def parse_file(self, file_path: str) -> Dict[str, Any]:
        if file_path.endswith('.yaml') or file_path.endswith('.yml'):
            return self.parse_yaml(file_path)
        elif file_path.endswith('.json'):
            return self.parse_json(file_path)
        else:
            raise ValueError(f"Unsupported config file format: {file_path}")

    def _parse_dict(self, data: Any, source: str) -> Dict[str, Any]:
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{source}: config must be a mapping, got {type(data).__name__}")
        section = data.get(self.section)
        if isinstance(section, dict):
            return dict(section)
        return dict(data)


def parse_assignments(pairs: Optional[List[str]], typed_keys: Iterable[str] = ()) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` strings into a dict.

    Values stay strings, so ``tag=010`` keeps its leading zero. Only keys in
    ``typed_keys`` are read as YAML scalars, so ``true`` becomes a bool and
    ``[a, b]`` a list.
    """
    typed_keys = set(typed_keys)
    result = {}
    for pair in pairs or []:
        if '=' not in pair:
            raise ValueError(f"Expected KEY=VALUE, got '{pair}'")
        key, value = pair.split('=', 1)
        key = key.strip()
        if not key:
            raise ValueError(f"Empty key in '{pair}'")
        result[key] = yaml.safe_load(value) if key in typed_keys and value else value
    return result
