from __future__ import annotations

from pathlib import Path

from rls.core.result import Err, Ok, Result
from rls.output.console import ConsoleProtocol, Style
from rls.platform.files import is_executable_file
from rls.platform.process import run_silent
from rls.services.release.errors import ReleaseError
from rls.services.release.model import HookInvocation, HookName
from rls.services.release.timeouts import PLUGIN_TIMEOUT_SECONDS

# Hooks whose plugins must not block failure handling.
BEST_EFFORT_HOOKS: frozenset[HookName] = frozenset({"on-error"})


class PluginRunner:
    """Runs the executables found under `{plugins_dir}/{hook}/`.

    Discovery happens at every hook point so earlier plugins can add or
    change later ones. Plugins run with no arguments, from the repository
    root, in lexicographic path order.
    """

    def __init__(
        self,
        *,
        repo_root: Path,
        plugins_dir: str,
        console: ConsoleProtocol,
        dry_run: bool,
    ) -> None:
        self.repo_root = repo_root
        self.plugins_root = repo_root / plugins_dir
        self._console = console
        self._dry_run = dry_run

    def discover(self, hook: HookName) -> HookInvocation:
        hook_dir = self.plugins_root / hook
        if not hook_dir.is_dir():
            return HookInvocation(hook=hook, executables=())
        found = sorted(p for p in hook_dir.iterdir() if is_executable_file(p))
        return HookInvocation(hook=hook, executables=tuple(found))

    def run(self, hook: HookName) -> Result[None, ReleaseError]:
        invocation = self.discover(hook)
        best_effort = hook in BEST_EFFORT_HOOKS

        for plugin in invocation.executables:
            rel = plugin.relative_to(self.repo_root)
            if self._dry_run:
                self._console.dry_run(str(rel))
                continue

            self._console.print(f"plugin [{hook}] {rel}", Style.DIM)
            result = run_silent([str(plugin)], cwd=self.repo_root, timeout=PLUGIN_TIMEOUT_SECONDS)
            if isinstance(result, Ok):
                continue

            e = result.error
            if best_effort:
                self._console.warning(f"{hook} plugin {rel} failed (exit {e.returncode})")
                continue
            return Err(
                ReleaseError(
                    kind="plugin_failed",
                    message=f"{hook} plugin failed: {rel} (exit {e.returncode})",
                    hint=e.stderr.strip() or None,
                )
            )

        return Ok(None)
