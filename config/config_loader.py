import os

import yaml

DEFAULT_CONFIG_FILE = os.path.join(os.path.dirname(__file__), "navigation.yaml")


class ConfigLoader:
    def __init__(self, config_file=DEFAULT_CONFIG_FILE):
        self.config_file = config_file
        self.config = {}
        if config_file and os.path.exists(config_file):
            with open(config_file, "r", encoding="utf-8") as f:
                self.config = yaml.safe_load(f) or {}

    @classmethod
    def from_mapping(cls, mapping):
        """Build a loader around an in-memory mapping (tests, embedded hosts)."""
        loader = cls(config_file=None)
        loader.config = dict(mapping or {})
        return loader

    def get(self, *keys, default=None):
        """
        Récupère une valeur dans la configuration.
        Si un chemin de clé n'existe pas :
          - lève une KeyError si aucun default n'est fourni
          - retourne le default sinon
        """
        ref = self.config
        for key in keys:
            if isinstance(ref, dict) and key in ref:
                ref = ref[key]
            else:
                if default is not None:
                    return default
                raise KeyError(f"Configuration key {' -> '.join(keys)} not found and no default provided.")
        return ref

    def section(self, *keys):
        """Return a nested mapping, or an empty dict when the section is absent."""
        value = self.get(*keys, default={})
        if not isinstance(value, dict):
            raise TypeError(f"Configuration section {' -> '.join(keys)} is not a mapping.")
        return value
