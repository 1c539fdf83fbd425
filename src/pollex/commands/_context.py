"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``.  Builds the engine on demand so ``--help`` and
``--version`` never load plugins.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pollex.config.settings import PollexSettings
    from pollex.engine.main import MainManager
    from pollex.plugins.manager import PluginManager


class AppContext:
    """Shared context flowing through Click's command hierarchy."""

    def __init__(self, settings: PollexSettings) -> None:
        self.settings = settings
        self._plugin_manager: PluginManager | None = None

        from pollex.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def plugin_manager(self) -> PluginManager:
        """Plugin manager with built-ins and discovered plugins (lazy)."""
        if self._plugin_manager is None:
            from pollex.plugins.builtins.system import SystemPlugin
            from pollex.plugins.manager import PluginManager

            pm = PluginManager()
            if self.settings.plugins_enabled:
                pm.register_plugin(SystemPlugin(), name="pollex-system")
                pm.discover_and_load(local_dir=self.settings.local_plugin_dir)
            self._plugin_manager = pm
        return self._plugin_manager

    def build_engine(self) -> MainManager:
        """A fresh root manager with every plugin submanager mounted."""
        from pollex.engine.main import MainManager

        engine = MainManager(stream_end=self.settings.engine.stream_end)
        self.plugin_manager.mount_submanagers(engine)
        return engine
