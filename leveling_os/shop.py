"""
Personal Leveling OS - Item Shop
Spend gold on consumables; using one pays its effect into the ledger.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from leveling_os.achievements import AchievementEvaluator
from leveling_os.errors import InsufficientResourceError, NotFoundError, ValidationError
from leveling_os.models import (
    InventoryItem,
    PurchaseResult,
    ShopEffect,
    ShopItem,
    StatType,
    UseItemResult,
)
from leveling_os.rewards import apply_reward
from leveling_os.storage import Storage

logger = logging.getLogger(__name__)


# ============================================
# CATALOG
# ============================================

SHOP_ITEMS: List[ShopItem] = [
    ShopItem(
        id="xp_scroll_minor",
        name="Minor Scroll of Insight",
        description="Read it to gain 250 XP on the spot.",
        icon="ScrollText",
        price=300,
        effect=ShopEffect.INSTANT_XP,
        value=250,
    ),
    ShopItem(
        id="xp_scroll_major",
        name="Major Scroll of Insight",
        description="A dense tome worth 1,500 XP.",
        icon="BookOpen",
        price=1500,
        effect=ShopEffect.INSTANT_XP,
        value=1500,
    ),
    ShopItem(
        id="elixir_strength",
        name="Elixir of Strength",
        description="Permanently increases Strength by 2.",
        icon="Dumbbell",
        price=800,
        effect=ShopEffect.STAT_BOOST,
        value=2,
        stat=StatType.STRENGTH,
    ),
    ShopItem(
        id="elixir_intelligence",
        name="Elixir of Intelligence",
        description="Permanently increases Intelligence by 2.",
        icon="Brain",
        price=800,
        effect=ShopEffect.STAT_BOOST,
        value=2,
        stat=StatType.INTELLIGENCE,
    ),
    ShopItem(
        id="stat_boost_perm",
        name="Eternal Growth Elixir",
        description="Permanently increases one stat by 5. Choose your path wisely.",
        icon="Sparkles",
        price=50000,
        effect=ShopEffect.STAT_BOOST,
        value=5,
        choosable=True,
    ),
]

SHOP_ITEMS_BY_ID: Dict[str, ShopItem] = {item.id: item for item in SHOP_ITEMS}


def get_shop_item(item_id: str) -> ShopItem:
    item = SHOP_ITEMS_BY_ID.get(item_id)
    if item is None:
        raise NotFoundError(f"Unknown shop item '{item_id}'")
    return item


# ============================================
# SHOP SERVICE
# ============================================

class ShopService:
    def __init__(self, storage: Storage):
        self.storage = storage
        self.achievements = AchievementEvaluator(storage)

    def list_items(self) -> List[ShopItem]:
        return list(SHOP_ITEMS)

    async def list_inventory(self) -> List[InventoryItem]:
        return await self.storage.list_inventory()

    async def purchase(self, item_id: str, quantity: int = 1, now: Optional[datetime] = None) -> PurchaseResult:
        """
        Buy `quantity` of an item.

        Raises:
            NotFoundError: unknown item
            ValidationError: quantity below 1
            InsufficientResourceError: not enough gold; nothing is changed
        """
        item = get_shop_item(item_id)
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity")
        cost = item.price * quantity
        now = now or datetime.now()

        async with self.storage.transaction():
            ledger = await self.storage.get_ledger(for_update=True)
            try:
                outcome = apply_reward(ledger, gold_delta=-cost, now=now)
            except InsufficientResourceError:
                logger.warning(f"Purchase of {quantity}x {item_id} refused: {ledger.current_gold}/{cost} gold")
                raise
            ledger = await self.storage.save_ledger(outcome.ledger)

            owned = await self.storage.get_inventory_item(item_id)
            stack = InventoryItem(
                item_id=item_id,
                quantity=(owned.quantity if owned else 0) + quantity,
                purchased_at=now,
            )
            stack = await self.storage.save_inventory_item(stack)

        logger.info(f"Purchased {quantity}x {item_id} for {cost} gold")
        return PurchaseResult(item=stack, gold_spent=cost, remaining_gold=ledger.current_gold)

    async def use_item(
        self,
        item_id: str,
        stat: Optional[StatType] = None,
        now: Optional[datetime] = None
    ) -> UseItemResult:
        """
        Consume one of an owned item. Items with a choosable stat need `stat`.
        A level-up from the item is checked against level achievements.
        """
        item = get_shop_item(item_id)
        if item.choosable and stat is None:
            raise ValidationError(f"{item.name} needs a stat to boost", field="stat")
        target = stat if item.choosable else item.stat
        now = now or datetime.now()

        async with self.storage.transaction():
            owned = await self.storage.get_inventory_item(item_id)
            if owned is None or owned.quantity < 1:
                raise InsufficientResourceError(
                    f"No {item.name} in inventory",
                    required=1,
                    available=owned.quantity if owned else 0,
                )

            ledger = await self.storage.get_ledger(for_update=True)
            if item.effect == ShopEffect.INSTANT_XP:
                outcome = apply_reward(ledger, xp_delta=item.value, now=now)
            else:
                outcome = apply_reward(ledger, stat_deltas={target.value: item.value}, now=now)
            ledger = await self.storage.save_ledger(outcome.ledger)

            unlocked = []
            if outcome.leveled_up:
                unlocked = await self.achievements.check_levels(ledger, now)

            remaining = owned.quantity - 1
            if remaining:
                await self.storage.save_inventory_item(owned.model_copy(update={"quantity": remaining}))
            else:
                await self.storage.delete_inventory_item(item_id)

        logger.info(f"Used {item_id} ({item.effect.value} +{item.value})")
        return UseItemResult(
            item_id=item_id,
            remaining_quantity=remaining,
            leveled_up=outcome.leveled_up,
            stats=ledger,
            unlocked_achievements=unlocked,
        )
