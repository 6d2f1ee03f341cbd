import unittest

from dishpalate.db import InMemoryDbClient, RecipeRecord, StoreError, UserRecord
from dishpalate.errors import NotFound
from dishpalate.ledger import (
    APPEND_PURCHASER,
    COUNT_VIEW,
    CREDIT_CREATOR,
    DEBIT_VIEWER,
    UnlockInterrupted,
    purchase_coins,
    unlock_recipe,
)


class FailingAppendDbClient(InMemoryDbClient):
    def append_purchaser(self, recipe_id, email):
        raise StoreError("write concern timeout")


class UnlockRecipeTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.insert_user(UserRecord(email="a@x.com", coin=20))
        self.db.insert_user(UserRecord(email="b@x.com", coin=0))
        self.recipe = self.db.insert_recipe(
            RecipeRecord(recipe_name="Ratatouille", creator_email="b@x.com")
        )

    def coin(self, email):
        return self.db.find_user_by_email(email).coin

    def test_unlock_debits_credits_and_tracks(self):
        outcome = unlock_recipe(self.db, "a@x.com", self.recipe.id)

        self.assertEqual(self.coin("a@x.com"), 10)
        self.assertEqual(self.coin("b@x.com"), 1)
        recipe = self.db.get_recipe(self.recipe.id)
        self.assertEqual(recipe.watch_count, 1)
        self.assertEqual(recipe.purchased_by, ["a@x.com"])
        self.assertTrue(outcome.creator_credited)
        self.assertEqual(
            outcome.completed_steps,
            [DEBIT_VIEWER, CREDIT_CREATOR, APPEND_PURCHASER, COUNT_VIEW],
        )

    def test_repeat_unlock_charges_again(self):
        unlock_recipe(self.db, "a@x.com", self.recipe.id)
        unlock_recipe(self.db, "a@x.com", self.recipe.id)

        self.assertEqual(self.coin("a@x.com"), 0)
        self.assertEqual(self.coin("b@x.com"), 2)
        recipe = self.db.get_recipe(self.recipe.id)
        self.assertEqual(recipe.purchased_by, ["a@x.com", "a@x.com"])
        self.assertEqual(recipe.watch_count, 2)

    def test_balance_may_go_negative(self):
        self.db.insert_user(UserRecord(email="poor@x.com", coin=3))
        unlock_recipe(self.db, "poor@x.com", self.recipe.id)
        self.assertEqual(self.coin("poor@x.com"), -7)

    def test_missing_viewer_mutates_nothing(self):
        with self.assertRaises(NotFound) as ctx:
            unlock_recipe(self.db, "ghost@x.com", self.recipe.id)
        self.assertEqual(ctx.exception.message, "User not found")
        self.assertEqual(self.coin("b@x.com"), 0)
        self.assertEqual(self.db.get_recipe(self.recipe.id).watch_count, 0)

    def test_missing_recipe_mutates_nothing(self):
        with self.assertRaises(NotFound) as ctx:
            unlock_recipe(self.db, "a@x.com", "0123456789abcdef01234567")
        self.assertEqual(ctx.exception.message, "Recipe not found")
        self.assertEqual(self.coin("a@x.com"), 20)

    def test_missing_creator_still_debits_and_tracks(self):
        orphan = self.db.insert_recipe(
            RecipeRecord(recipe_name="Orphan Stew", creator_email="gone@x.com")
        )
        with self.assertLogs("dishpalate.ledger", level="WARNING"):
            outcome = unlock_recipe(self.db, "a@x.com", orphan.id)

        self.assertFalse(outcome.creator_credited)
        self.assertEqual(self.coin("a@x.com"), 10)
        self.assertIsNone(self.db.find_user_by_email("gone@x.com"))
        recipe = self.db.get_recipe(orphan.id)
        self.assertEqual(recipe.purchased_by, ["a@x.com"])
        self.assertEqual(recipe.watch_count, 1)

    def test_interrupted_unlock_keeps_earlier_steps(self):
        db = FailingAppendDbClient()
        db.insert_user(UserRecord(email="a@x.com", coin=20))
        db.insert_user(UserRecord(email="b@x.com", coin=0))
        recipe = db.insert_recipe(
            RecipeRecord(recipe_name="Ratatouille", creator_email="b@x.com")
        )

        with self.assertRaises(UnlockInterrupted) as ctx:
            unlock_recipe(db, "a@x.com", recipe.id)

        self.assertIsInstance(ctx.exception, StoreError)
        self.assertEqual(ctx.exception.completed_steps, [DEBIT_VIEWER, CREDIT_CREATOR])
        self.assertEqual(db.find_user_by_email("a@x.com").coin, 10)
        self.assertEqual(db.find_user_by_email("b@x.com").coin, 1)
        self.assertEqual(db.get_recipe(recipe.id).watch_count, 0)


class PurchaseCoinsTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.insert_user(UserRecord(email="a@x.com", coin=10))

    def test_adds_amount(self):
        purchase_coins(self.db, "a@x.com", 25)
        self.assertEqual(self.db.find_user_by_email("a@x.com").coin, 35)

    def test_negative_amount_is_accepted(self):
        purchase_coins(self.db, "a@x.com", -15)
        self.assertEqual(self.db.find_user_by_email("a@x.com").coin, -5)

    def test_unknown_user(self):
        with self.assertRaises(NotFound):
            purchase_coins(self.db, "ghost@x.com", 5)


if __name__ == "__main__":
    unittest.main()
