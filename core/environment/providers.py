from dishka import Provider, Scope, provide
from core.environment.config import Settings


class EnvironmentProvider(Provider):
    """
    Provider for environment configuration.

    Parameters
    ----------
    settings : Settings | None
        Preloaded settings; read from the environment when omitted
    """

    component = "environment"
    scope = Scope.APP

    def __init__(self, settings: Settings | None = None):
        super().__init__()
        self._settings = settings

    @provide
    def get_environment(self) -> Settings:
        """
        Provide application settings.

        Returns
        -------
        Settings
            Application settings instance
        """
        if self._settings is None:
            self._settings = Settings()
        return self._settings
