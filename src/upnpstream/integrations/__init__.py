import importlib
import logging

logger = logging.getLogger(__name__)


# Register the error types of the transport engines that are installed.
integrations = ("httpx", "aiohttp")
for name in integrations:
    try:
        importlib.import_module(f"upnpstream.integrations.{name}")
    except (ImportError, AttributeError):
        pass
    else:
        logger.debug("registered %s integration", name)
