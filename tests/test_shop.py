"""Tests for buying and using shop items."""
import pytest

from leveling_os.errors import InsufficientResourceError, NotFoundError, ValidationError
from leveling_os.models import ProgressionLedger, StatType
from leveling_os.shop import SHOP_ITEMS, ShopService


@pytest.fixture
def shop(storage):
    return ShopService(storage)


async def give_gold(storage, amount):
    async with storage.transaction():
        await storage.save_ledger(ProgressionLedger(current_gold=amount, lifetime_gold=amount))


class TestCatalog:

    def test_items_are_unique(self, shop):
        ids = [item.id for item in shop.list_items()]
        assert len(ids) == len(set(ids)) == len(SHOP_ITEMS)

    def test_stat_items_name_a_stat_or_let_the_player_choose(self, shop):
        for item in shop.list_items():
            if item.effect.value == "stat_boost":
                assert (item.stat is None) == item.choosable


class TestPurchase:

    async def test_buy_deducts_gold(self, shop, storage, now):
        await give_gold(storage, 1000)
        result = await shop.purchase("xp_scroll_minor", 2, now=now)

        assert result.gold_spent == 600
        assert result.remaining_gold == 400
        assert result.item.quantity == 2
        ledger = await storage.get_ledger()
        assert ledger.current_gold == 400
        assert ledger.lifetime_gold == 1000

    async def test_purchases_stack(self, shop, storage, now):
        await give_gold(storage, 1000)
        await shop.purchase("xp_scroll_minor", 1, now=now)
        await shop.purchase("xp_scroll_minor", 1, now=now)
        inventory = await shop.list_inventory()
        assert [(i.item_id, i.quantity) for i in inventory] == [("xp_scroll_minor", 2)]

    async def test_not_enough_gold_changes_nothing(self, shop, storage, now):
        await give_gold(storage, 100)
        with pytest.raises(InsufficientResourceError) as exc:
            await shop.purchase("xp_scroll_minor", 1, now=now)
        assert exc.value.required == 300
        assert exc.value.available == 100
        assert (await storage.get_ledger()).current_gold == 100
        assert await shop.list_inventory() == []

    async def test_unknown_item(self, shop):
        with pytest.raises(NotFoundError):
            await shop.purchase("excalibur")


class TestUseItem:

    async def test_xp_scroll(self, shop, storage, now):
        await give_gold(storage, 600)
        await shop.purchase("xp_scroll_minor", 2, now=now)

        result = await shop.use_item("xp_scroll_minor", now=now)
        assert result.remaining_quantity == 1
        assert result.stats.current_xp == 250

        result = await shop.use_item("xp_scroll_minor", now=now)
        assert result.remaining_quantity == 0
        assert await shop.list_inventory() == []

        with pytest.raises(InsufficientResourceError):
            await shop.use_item("xp_scroll_minor", now=now)

    async def test_stat_elixir(self, shop, storage, now):
        await give_gold(storage, 800)
        await shop.purchase("elixir_strength", now=now)
        result = await shop.use_item("elixir_strength", now=now)
        assert result.stats.strength == 2
        assert result.stats.current_gold == 0

    async def test_big_scroll_can_level_up(self, shop, storage, now):
        await give_gold(storage, 1500)
        await shop.purchase("xp_scroll_major", now=now)
        result = await shop.use_item("xp_scroll_major", now=now)
        assert result.leveled_up
        assert result.stats.level == 2
        assert result.stats.current_xp == 500

    async def test_level_up_unlocks_level_achievement(self, shop, storage, now):
        async with storage.transaction():
            await storage.save_ledger(ProgressionLedger(
                level=4, current_xp=1100, total_xp=4252, current_gold=300, lifetime_gold=300
            ))
        await shop.purchase("xp_scroll_minor", now=now)
        result = await shop.use_item("xp_scroll_minor", now=now)

        assert result.stats.level == 5
        assert [a.key for a in result.unlocked_achievements] == ["level_5"]
        unlocked = await storage.list_achievements(unlocked_only=True)
        assert [a.key for a in unlocked] == ["level_5"]

    async def test_no_level_up_unlocks_nothing(self, shop, storage, now):
        await give_gold(storage, 300)
        await shop.purchase("xp_scroll_minor", now=now)
        result = await shop.use_item("xp_scroll_minor", now=now)
        assert result.unlocked_achievements == []


class TestChoosableElixir:

    async def test_boosts_the_chosen_stat(self, shop, storage, now):
        await give_gold(storage, 50000)
        await shop.purchase("stat_boost_perm", now=now)
        result = await shop.use_item("stat_boost_perm", stat=StatType.SENSE, now=now)
        assert result.stats.sense == 5
        assert result.stats.strength == 0
        assert result.remaining_quantity == 0

    async def test_needs_a_stat(self, shop, storage, now):
        await give_gold(storage, 50000)
        await shop.purchase("stat_boost_perm", now=now)
        with pytest.raises(ValidationError):
            await shop.use_item("stat_boost_perm", now=now)
        inventory = await shop.list_inventory()
        assert [(i.item_id, i.quantity) for i in inventory] == [("stat_boost_perm", 1)]

    async def test_fixed_elixir_ignores_requested_stat(self, shop, storage, now):
        await give_gold(storage, 800)
        await shop.purchase("elixir_strength", now=now)
        result = await shop.use_item("elixir_strength", stat=StatType.SENSE, now=now)
        assert result.stats.strength == 2
        assert result.stats.sense == 0
