import unittest
from unittest import mock

import requests

from animal_feed.image_downloader import DEFAULT_USER_AGENT, ImageDownloader


def fake_session(chunks=(), error=None):
    resp = mock.MagicMock()
    resp.__enter__.return_value = resp
    resp.iter_content.return_value = list(chunks)
    if error is not None:
        resp.raise_for_status.side_effect = error
    session = mock.MagicMock()
    session.headers = {}
    session.get.return_value = resp
    return session


class TestImageDownloader(unittest.TestCase):
    def test_sets_user_agent_and_timeouts(self):
        session = fake_session([b"abc"])
        downloader = ImageDownloader(connect_timeout=10.0, read_timeout=15.0, session=session)
        self.assertEqual(downloader.download("https://img.example/a.jpg"), b"abc")
        self.assertEqual(session.headers["User-Agent"], DEFAULT_USER_AGENT)
        session.get.assert_called_once_with("https://img.example/a.jpg", timeout=(10.0, 15.0), stream=True)

    def test_joins_chunks_and_skips_keepalive(self):
        session = fake_session([b"ab", b"", b"cd"])
        self.assertEqual(ImageDownloader(session=session).download("u"), b"abcd")

    def test_oversized_body_is_cut_one_byte_past_limit(self):
        session = fake_session([b"x" * 6, b"x" * 6, b"x" * 6])
        body = ImageDownloader(max_bytes=10, session=session).download("u")
        self.assertEqual(len(body), 11)

    def test_body_at_limit_is_returned_whole(self):
        session = fake_session([b"x" * 5, b"x" * 5])
        self.assertEqual(len(ImageDownloader(max_bytes=10, session=session).download("u")), 10)

    def test_http_error_returns_none(self):
        session = fake_session(error=requests.HTTPError("404 Client Error"))
        self.assertIsNone(ImageDownloader(session=session).download("u"))

    def test_connection_error_returns_none(self):
        session = fake_session()
        session.get.side_effect = requests.ConnectionError("refused")
        self.assertIsNone(ImageDownloader(session=session).download("u"))

    def test_close_closes_session(self):
        session = fake_session()
        ImageDownloader(session=session).close()
        session.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
