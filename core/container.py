from dishka import make_async_container, AsyncContainer
from dishka.integrations.fastapi import FastapiProvider

from core.environment.config import Settings
from core.environment.providers import EnvironmentProvider
from chain_reader.providers import ChainReaderProvider
from content.providers import ContentProvider
from core.redis.providers import RedisProvider, CacheProvider
from core.logging.providers import LoggerProvider


def create_container(settings: Settings | None = None) -> AsyncContainer:
    """
    Build the application container.

    Parameters
    ----------
    settings : Settings | None
        Settings override; read from the environment when omitted

    Returns
    -------
    AsyncContainer
        Dependency container
    """
    return make_async_container(
        FastapiProvider(),
        EnvironmentProvider(settings),
        LoggerProvider(),
        ChainReaderProvider(),
        ContentProvider(),
        RedisProvider(),
        CacheProvider()
    )


container = create_container()
