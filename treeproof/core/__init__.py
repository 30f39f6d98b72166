from treeproof.core.config import get_config
from treeproof.core.logging import setup_logging

__all__ = ["get_config", "setup_logging"]
