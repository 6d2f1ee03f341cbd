import unittest
from unittest.mock import MagicMock

from bson import ObjectId
from pymongo import errors as mongo_errors

from dishpalate.db import (
    DuplicateUser,
    MongoDbClient,
    RecipeFilter,
    StoreError,
    UserRecord,
)


class MongoDbClientTests(unittest.TestCase):
    def setUp(self):
        self.users = MagicMock()
        self.recipes = MagicMock()
        database = MagicMock()
        database.__getitem__.side_effect = {
            "users": self.users,
            "recipes": self.recipes,
        }.__getitem__
        client = MagicMock()
        client.__getitem__.return_value = database
        self.db = MongoDbClient(client=client)

    def test_recipe_query_composes_only_given_predicates(self):
        self.assertEqual(MongoDbClient.recipe_query(RecipeFilter()), {})
        self.assertEqual(
            MongoDbClient.recipe_query(
                RecipeFilter(category="dessert", country="FR", search="a.b")
            ),
            {
                "category": "dessert",
                "country": "FR",
                "recipeName": {"$regex": r"a\.b", "$options": "i"},
            },
        )

    def test_recipe_documents_map_to_records(self):
        oid = ObjectId()
        self.recipes.find_one.return_value = {
            "_id": oid,
            "recipeName": "Crepes",
            "creatorEmail": "b@x.com",
            "reaction": ["u@x.com"],
            "purchased_by": [],
            "watchCount": 3,
            "youtubeCode": "xyz",
        }
        recipe = self.db.get_recipe(str(oid))
        self.recipes.find_one.assert_called_once_with({"_id": oid})
        self.assertEqual(recipe.id, str(oid))
        self.assertEqual(recipe.watch_count, 3)
        self.assertEqual(recipe.extra, {"youtubeCode": "xyz"})

    def test_malformed_recipe_id_is_not_queried(self):
        self.assertIsNone(self.db.get_recipe("not-an-id"))
        self.assertEqual(self.db.append_purchaser("not-an-id", "a@x.com"), 0)
        self.recipes.find_one.assert_not_called()
        self.recipes.update_one.assert_not_called()

    def test_unlock_mutations_are_single_document_updates(self):
        oid = ObjectId()
        self.users.update_one.return_value.matched_count = 0
        self.recipes.update_one.return_value.matched_count = 1

        self.assertEqual(self.db.increment_user_coin("gone@x.com", 1), 0)
        self.users.update_one.assert_called_once_with(
            {"email": "gone@x.com"}, {"$inc": {"coin": 1}}
        )

        self.assertEqual(self.db.append_purchaser(str(oid), "a@x.com"), 1)
        self.recipes.update_one.assert_called_with(
            {"_id": oid}, {"$push": {"purchased_by": "a@x.com"}}
        )
        self.db.increment_watch_count(str(oid))
        self.recipes.update_one.assert_called_with(
            {"_id": oid}, {"$inc": {"watchCount": 1}}
        )
        self.db.add_reaction(str(oid), "u@x.com")
        self.recipes.update_one.assert_called_with(
            {"_id": oid}, {"$addToSet": {"reaction": "u@x.com"}}
        )
        self.db.remove_reaction(str(oid), "u@x.com")
        self.recipes.update_one.assert_called_with(
            {"_id": oid}, {"$pull": {"reaction": "u@x.com"}}
        )

    def test_driver_errors_are_wrapped(self):
        self.users.find_one.side_effect = mongo_errors.ServerSelectionTimeoutError(
            "no servers"
        )
        with self.assertRaises(StoreError):
            self.db.find_user_by_email("a@x.com")

        self.users.insert_one.side_effect = mongo_errors.DuplicateKeyError(
            "dup key", 11000
        )
        with self.assertRaises(DuplicateUser):
            self.db.insert_user(UserRecord(email="a@x.com"))


if __name__ == "__main__":
    unittest.main()
