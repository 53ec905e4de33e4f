import os
from typing import Any, Dict, Optional
from urllib.parse import urlparse
import yaml
import logging

from ..remote.rest_client import RemoteAPIConfig
from ..storage.models import CollectionSchema
from ..sync.models import SyncConfig

logger = logging.getLogger(__name__)

def _optional_int(value: str) -> Optional[int]:
    return None if value.strip().lower() in ('', 'none', 'null') else int(value)

class ConfigLoader:
    """Reads the sync settings YAML, checks it and layers environment overrides on top"""

    def __init__(self, config_path: str = None):
        """
        Args:
            config_path: YAML file to read; the packaged default_config.yaml when omitted
        """
        self.config_path = config_path or self._get_default_config_path()
        self.config = {}

    @staticmethod
    def _get_default_config_path() -> str:
        """Location of the default_config.yaml shipped next to this module"""
        return os.path.join(os.path.dirname(__file__), 'default_config.yaml')

    def load(self) -> Dict[str, Any]:
        """
        Read the YAML file and check the sections the sync layer needs

        Returns:
            The parsed configuration dict, also kept on self.config
        """
        try:
            with open(self.config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}

            self._validate_config()
            return self.config

        except Exception as e:
            logger.error(f"Error loading config from {self.config_path}: {str(e)}")
            raise

    def _validate_config(self):
        """Fail fast on missing sections, remote URL, storage path or collections"""
        required_sections = ['remote', 'storage', 'sync', 'connectivity', 'collections', 'logging']

        for section in required_sections:
            if section not in self.config:
                raise ValueError(f"Missing required config section: {section}")

        if not self.config['remote'].get('base_url'):
            raise ValueError("Missing required remote base_url")

        if not self.config['storage'].get('path'):
            raise ValueError("Missing required storage path")

        if not self.config['collections']:
            raise ValueError("At least one collection must be configured")

    def update_from_env(self):
        """Apply TALEBEDU_* and LOG_LEVEL environment overrides; bad values are logged and skipped"""
        env_mappings = {
            'TALEBEDU_API_URL': ('remote', 'base_url', str),
            'TALEBEDU_API_KEY': ('remote', 'api_key', str),
            'TALEBEDU_DB_PATH': ('storage', 'path', str),
            'TALEBEDU_MAX_ATTEMPTS': ('sync', 'max_attempts', _optional_int),
            'TALEBEDU_START_ONLINE': ('connectivity', 'start_online', lambda x: x.lower() == 'true'),
            'LOG_LEVEL': ('logging', 'level', str),
        }

        for env_var, (section, key, type_conv) in env_mappings.items():
            if env_var in os.environ:
                try:
                    self.config.setdefault(section, {})[key] = type_conv(os.environ[env_var])
                except Exception as e:
                    logger.warning(
                        f"Failed to set {env_var} config value: {str(e)}"
                    )

    def sync_config(self) -> SyncConfig:
        section = self.config['sync']
        return SyncConfig(
            sync_interval=section.get('interval', 30),
            max_attempts=section.get('max_attempts'),
            queue_rejected_writes=bool(section.get('queue_rejected_writes', False)),
            purge_interval=section.get('purge_interval', 300)
        )

    def remote_config(self) -> RemoteAPIConfig:
        section = self.config['remote']
        return RemoteAPIConfig(
            base_url=section['base_url'],
            api_key=section.get('api_key'),
            headers=section.get('headers'),
            timeout=section.get('timeout', 30)
        )

    def collection_schemas(self) -> Dict[str, CollectionSchema]:
        schemas = {}
        for name, options in self.config['collections'].items():
            options = options or {}
            schemas[name] = CollectionSchema(
                name=name,
                table=options.get('table', name),
                required_fields=tuple(options.get('required_fields') or ())
            )
        return schemas

    def probe_address(self) -> tuple:
        """Host and port the reachability probe should connect to"""
        parsed = urlparse(self.config['remote']['base_url'])
        port = parsed.port or (443 if parsed.scheme == 'https' else 80)
        return parsed.hostname, port
