import unittest

from santa_draw import create_app
from santa_draw.extensions import db
from santa_draw.services.store import ParticipantStore

ADMIN_PASSWORD = "ho-ho-ho"


class AppTestCase(unittest.TestCase):
    """Fresh app on an in-memory database for every test."""

    config = {}

    def setUp(self):
        config = {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "WTF_CSRF_ENABLED": False,
            "ADMIN_PASSWORD": ADMIN_PASSWORD,
            "SHUFFLE_INTERVAL_MS": 0,
        }
        config.update(self.config)
        self.app = create_app(config)
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.store = ParticipantStore()
        self.client = self.app.test_client()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def add(self, *names):
        return [self.store.insert(name) for name in names]

    def by_name(self):
        return {p.name: p for p in self.store.list()}
