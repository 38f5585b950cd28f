"""Reward catalog and point redemptions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from campus_events.domain.errors import NotFoundError, ValidationError
from campus_events.domain.models import (
    CatalogReward,
    PointSource,
    Redemption,
    RedemptionStatus,
)
from campus_events.repos.locks import KeyedLocks
from campus_events.repos.memory import CatalogRepository, RedemptionRepository
from campus_events.services.reward_service import RewardService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RewardCatalogService:
    """Catalog maintenance plus the redeem / complete / cancel lifecycle.

    Lock order is redemption, then catalog item, then user (inside
    RewardService), so redeem and cancel never wait on each other in a cycle.
    """

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        redemption_repo: RedemptionRepository,
        rewards: RewardService,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.catalog_repo = catalog_repo
        self.redemption_repo = redemption_repo
        self.rewards = rewards
        self.locks = locks or KeyedLocks()

    def _require_item(self, reward_id: str) -> CatalogReward:
        item = self.catalog_repo.get(reward_id)
        if item is None:
            raise NotFoundError("Reward not found")
        return item

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def get_item(self, reward_id: str) -> CatalogReward:
        return self._require_item(reward_id)

    def add_item(self, item: CatalogReward) -> CatalogReward:
        self.catalog_repo.add(item)
        return item

    def update_item(self, reward_id: str, changes: dict[str, Any]) -> CatalogReward:
        with self.locks.for_key(reward_id):
            item = self._require_item(reward_id)
            updated = item.model_copy(update=changes)
            self.catalog_repo.add(updated)
        return updated

    def delete_item(self, reward_id: str) -> None:
        with self.locks.for_key(reward_id):
            if self.catalog_repo.delete(reward_id) is None:
                raise NotFoundError("Reward not found")

    # ------------------------------------------------------------------
    # Redemptions
    # ------------------------------------------------------------------

    def redeem(
        self, reward_id: str, user_id: str, now: datetime | None = None
    ) -> tuple[Redemption, int]:
        """Spend the item's price and take one from stock.

        Returns the redemption and the user's remaining points.
        """
        now = now or _utcnow()
        with self.locks.for_key(reward_id):
            item = self._require_item(reward_id)
            if not item.available or item.quantity <= 0:
                raise ValidationError("Reward is not available")
            state = self.rewards.spend_points(
                user_id, item.points, f"Redeemed reward: {item.title}", now=now
            )
            redemption = Redemption(
                user_id=user_id, reward_id=item.id, points=item.points, redeemed_at=now
            )
            self.redemption_repo.add(redemption)
            item.quantity -= 1
            if item.quantity == 0:
                item.available = False

        logger.info(
            "reward redeemed",
            extra={"user_id": user_id, "reward_id": reward_id, "points": item.points},
        )
        return redemption, state.total

    def list_redemptions(self, user_id: str) -> list[dict]:
        entries = []
        for redemption in self.redemption_repo.list_for_user(user_id):
            entry = redemption.model_dump(mode="json")
            item = self.catalog_repo.get(redemption.reward_id)
            entry["reward"] = (
                item.model_dump(
                    mode="json", include={"id", "title", "description", "image", "points"}
                )
                if item
                else None
            )
            entries.append(entry)
        return entries

    def set_status(
        self,
        redemption_id: str,
        status: RedemptionStatus,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Redemption:
        """Move a pending redemption to completed or cancelled.

        Cancelling refunds the points and puts the item back in stock. A
        redemption that already left ``pending`` cannot change again.
        """
        now = now or _utcnow()
        with self.locks.for_key(redemption_id):
            redemption = self.redemption_repo.get(redemption_id)
            if redemption is None:
                raise NotFoundError("Redemption not found")
            if status == redemption.status:
                return redemption
            if redemption.status != RedemptionStatus.PENDING:
                raise ValidationError(f"Redemption is already {redemption.status}")

            if status == RedemptionStatus.CANCELLED:
                self._refund(redemption, now)
            elif status == RedemptionStatus.COMPLETED:
                redemption.completed_at = now
            redemption.status = status
            if notes is not None:
                redemption.notes = notes

        logger.info(
            "redemption status changed",
            extra={"redemption_id": redemption_id, "status": str(status)},
        )
        return redemption

    def _refund(self, redemption: Redemption, now: datetime) -> None:
        with self.locks.for_key(redemption.reward_id):
            item = self.catalog_repo.get(redemption.reward_id)
            if redemption.points > 0:
                title = item.title if item else redemption.reward_id
                self.rewards.grant_points(
                    redemption.user_id,
                    redemption.points,
                    f"Refund for cancelled redemption: {title}",
                    PointSource.REDEMPTION,
                    now=now,
                )
            # A deleted catalog item has no stock to return to.
            if item is not None:
                item.quantity += 1
                item.available = True
