# talebedu_sync/logging_config.py
import logging
import logging.config
from typing import Any, Dict

def setup_logging(config: Dict[str, Any]):
    """Setup logging configuration"""
    logging_config = dict(config['logging'])
    level = logging_config.pop('level', None)
    logging.config.dictConfig(logging_config)

    if level:
        logging.getLogger().setLevel(str(level).upper())

    return logging.getLogger(__name__)
