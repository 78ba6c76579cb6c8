import unittest

from animal_feed.main import app


class TestMain(unittest.TestCase):
    def test_app_metadata(self):
        self.assertEqual(app.title, "Infinite Cute Animals Feed")

    def test_routes_registered(self):
        paths = {route.path for route in app.routes}
        for path in ("/feed", "/admin/stats", "/admin/stream", "/admin/refresh-daily-cache", "/admin/cache"):
            self.assertIn(path, paths)


if __name__ == "__main__":
    unittest.main()
