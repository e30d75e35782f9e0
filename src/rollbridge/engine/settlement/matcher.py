"""SettlementMatcher: find the stored proof bundle for the on-chain root."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from rollbridge.core.roots import StateRoot

if TYPE_CHECKING:
    from rollbridge.contracts.records import ProofBundleRecord
    from rollbridge.engine.context import ServiceContext

logger = structlog.get_logger(__name__)


class SettlementMatcher:
    def __init__(self, ctx: ServiceContext) -> None:
        self._ctx = ctx
        self._bundles = ctx.bundle_store

    def current_root(self) -> StateRoot:
        value = self._ctx.retry.call(self._ctx.chain.state_root, name="state_root", sleep=self._ctx.sleep)
        return StateRoot(value)

    def match(self) -> ProofBundleRecord | None:
        """Look the current root up by its canonical hex form.

        None means no proof exists for this root yet, not a failure.
        """
        root = self.current_root()
        bundle = self._bundles.find_by_root(root.hex)
        if bundle is None:
            logger.info("no_bundle_for_root", merkle_root=root.hex)
        else:
            logger.info("bundle_matched", merkle_root=root.hex, task_id=bundle.task_id)
        return bundle
