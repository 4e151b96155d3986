"""
Session driver -- one pre-use pass, one use step, one post-use pass.

The driver holds no decision logic. It captures the save's modification
time on either side of the use step exactly once each, and it makes
sure a network problem costs at most a skipped pass: the game still
runs on whatever local save is already there.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .engine import ReconciliationEngine, skip_if_unchanged
from .errors import ClockRangeError, ConnectivityError, LaunchError, TransferError
from .locator import ArtifactLocator
from .models import Outcome, PassResult, SessionConfig, SessionReport
from .remote import RemoteStore, create_store

logger = logging.getLogger("syncfactory.session")

# A pass that hits one of these is reported as failed, not raised.
# OSError covers local disk trouble the locator did not wrap itself.
PASS_ERRORS = (ConnectivityError, TransferError, ClockRangeError, OSError)

Reporter = Callable[[str, PassResult], None]


def failed(exc: Exception, action: str) -> PassResult:
    """FAILED result carrying a one-line explanation."""
    return PassResult(outcome=Outcome.FAILED, message=f"{action} skipped: {exc}")


class SessionDriver:
    """Runs a full sync session around an opaque use step.

    Args:
        config: Immutable session configuration.
        locator: Local artifact locator.
        use_step: Blocking callable, typically the game launcher.
        store_factory: Builds a connected store from the config.
        reporter: Called with ``("pre"|"post", result)`` as each pass ends.
    """

    def __init__(
        self,
        config: SessionConfig,
        locator: ArtifactLocator,
        use_step: Callable[[], None],
        store_factory: Callable[[SessionConfig], RemoteStore] = create_store,
        reporter: Optional[Reporter] = None,
    ):
        self.config = config
        self.locator = locator
        self.use_step = use_step
        self.store_factory = store_factory
        self.reporter = reporter

    def _report(self, phase: str, result: PassResult) -> PassResult:
        if result.outcome in (Outcome.FAILED, Outcome.CONFLICT):
            logger.warning("%s-use: %s", phase, result.message)
        else:
            logger.info("%s-use: %s", phase, result.message)
        if self.reporter is not None:
            self.reporter(phase, result)
        return result

    def _connect(self) -> tuple[Optional[RemoteStore], Optional[ConnectivityError]]:
        try:
            return self.store_factory(self.config), None
        except ConnectivityError as exc:
            logger.warning("Remote store unavailable: %s", exc)
            return None, exc

    def _use(self) -> bool:
        try:
            self.use_step()
        except LaunchError as exc:
            logger.error("Could not start the game: %s", exc)
            return False
        return True

    def run(self) -> SessionReport:
        """Run the session.

        Raises:
            ArtifactNotFoundError: If there is no local save to start from,
                or it disappears during the use step.
            ConfigError: If the store is misconfigured.
        """
        name = self.config.save_name
        initial = self.locator.artifact(name)

        store, offline = self._connect()
        try:
            if store is None:
                pre = failed(offline, "Download")
            else:
                engine = ReconciliationEngine(store, self.locator, self.config)
                try:
                    pre = engine.pre_use(initial)
                except PASS_ERRORS as exc:
                    pre = failed(exc, "Download")
            self._report("pre", pre)

            start = self.locator.artifact(name)
            launched = self._use()
            end = self.locator.artifact(name)

            post = skip_if_unchanged(start.modified, end.modified)
            if post is None:
                if store is None:
                    post = failed(offline, "Upload")
                else:
                    try:
                        post = engine.post_use(end, start.modified, end.modified)
                    except PASS_ERRORS as exc:
                        post = failed(exc, "Upload")
            self._report("post", post)
        finally:
            if store is not None:
                store.close()

        return SessionReport(
            save_name=name,
            pre=pre,
            post=post,
            start_time=start.modified,
            end_time=end.modified,
            launched=launched,
        )
