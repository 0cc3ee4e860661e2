import unittest

from classforum.db import STATUS_BANNED
from classforum.tests.helpers import ForumTestCase


class SearchRoutesTests(ForumTestCase):
    def setUp(self):
        super().setUp()
        self.user, _ = self.make_user("alice")
        self.category = self.db.create_category("General")

    def _post(self, title, content="body"):
        return self.make_post(self.user, title=title, content=content, category=self.category)

    def test_empty_query_rejected(self):
        for params in ({}, {"q": "   "}):
            response = self.client.get("/api/search", params=params)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["error"], "Search query cannot be empty")

    def test_matches_title_or_content_case_insensitively(self):
        self._post("Physics homework")
        self._post("Lunch", content="bring your PHYSICS book")
        self._post("Unrelated")
        results = self.client.get("/api/search", params={"q": "physics"}).json()
        self.assertEqual(
            sorted(r["title"] for r in results), ["Lunch", "Physics homework"]
        )

    def test_banned_posts_excluded(self):
        post = self._post("Exam tips")
        self.db.update_post(post.id, status=STATUS_BANNED)
        results = self.client.get("/api/search", params={"q": "exam"}).json()
        self.assertEqual(results, [])


if __name__ == "__main__":
    unittest.main()
