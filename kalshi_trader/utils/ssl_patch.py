import ssl
import certifi
import logging

logger = logging.getLogger(__name__)


def get_ssl_context():
    """Returns a secure SSL context using certifi certificates."""
    try:
        return ssl.create_default_context(cafile=certifi.where())
    except (ssl.SSLError, OSError) as e:
        logger.error(f"Failed to create SSL context: {e}")
        return None
