import unittest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import AuditLog, Branch, LogType, SystemConfig, User, UserRole
from stockledger.services import settings_service
from stockledger.services.errors import NotFoundError, SettingsValidationError


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(AuditLog).delete()
        db.session.query(User).delete()
        db.session.query(Branch).delete()
        db.session.query(SystemConfig).delete()
        db.session.commit()

        self.admin = User(
            username="admin",
            name="Alex Admin",
            password_hash="not-a-real-hash",
            role=UserRole.ADMIN,
        )
        db.session.add(self.admin)
        db.session.commit()

    def test_defaults_created_on_first_read(self):
        config = settings_service.get_config()
        db.session.commit()

        self.assertEqual(config.store_name, "My Local Hardware")
        self.assertEqual(config.tax_rate_bps, 1500)
        self.assertEqual(config.low_stock_threshold, 10)
        self.assertEqual(config.payment_methods[0], "Ecocash (Mobile)")
        self.assertEqual(db.session.query(SystemConfig).count(), 1)

    def test_update_tax_rate_from_percent(self):
        config = settings_service.update_config({"tax_rate": "8.25"}, actor=self.admin)
        self.assertEqual(config.tax_rate_bps, 825)
        self.assertEqual(config.to_dict()["tax_rate"], 8.25)

        log = db.session.query(AuditLog).order_by(AuditLog.id.desc()).first()
        self.assertEqual(log.type, LogType.SYSTEM)
        self.assertEqual(log.user_name, "Alex Admin")
        self.assertIn("tax_rate", log.details)

    def test_rejects_out_of_range_tax(self):
        with self.assertRaises(SettingsValidationError):
            settings_service.update_config({"tax_rate": 101})
        with self.assertRaises(SettingsValidationError):
            settings_service.update_config({"tax_rate_bps": -1})
        with self.assertRaises(SettingsValidationError):
            settings_service.update_config({"tax_rate": "lots"})

    def test_rejects_unknown_fields(self):
        with self.assertRaises(SettingsValidationError) as ctx:
            settings_service.update_config({"theme": "dark"})
        self.assertIn("theme", ctx.exception.message)

    def test_rejected_update_changes_nothing(self):
        settings_service.update_config({"store_name": "Old Name"}, actor=self.admin)
        logs_before = db.session.query(AuditLog).count()

        with self.assertRaises(SettingsValidationError):
            settings_service.update_config(
                {"store_name": "New Name", "currency": "DOLLARS", "low_stock_threshold": 3},
                actor=self.admin,
            )

        # Same session, no rollback: nothing was assigned before the failure.
        config = settings_service.get_config()
        self.assertEqual(config.store_name, "Old Name")
        self.assertEqual(config.low_stock_threshold, 10)

        db.session.commit()
        self.assertEqual(settings_service.get_config().store_name, "Old Name")
        self.assertEqual(db.session.query(AuditLog).count(), logs_before)

    def test_payment_methods_are_cleaned(self):
        config = settings_service.update_config({"payment_methods": [" Card ", "Card", "", "USD Cash"]})
        self.assertEqual(config.payment_methods, ["Card", "USD Cash"])

        with self.assertRaises(SettingsValidationError):
            settings_service.update_config({"payment_methods": []})

    def test_resolve_payment_method_falls_back_to_first(self):
        settings_service.update_config({"payment_methods": ["USD Cash", "Card"]})
        self.assertEqual(settings_service.resolve_payment_method("Card"), "Card")
        self.assertEqual(settings_service.resolve_payment_method("Bitcoin"), "USD Cash")
        self.assertEqual(settings_service.resolve_payment_method(None), "USD Cash")

    def test_currency_and_threshold_validation(self):
        config = settings_service.update_config({"currency": "zwl", "low_stock_threshold": 3})
        self.assertEqual(config.currency, "ZWL")
        self.assertEqual(config.low_stock_threshold, 3)

        with self.assertRaises(SettingsValidationError):
            settings_service.update_config({"currency": "DOLLARS"})
        with self.assertRaises(SettingsValidationError):
            settings_service.update_config({"low_stock_threshold": -5})

    def test_branch_lifecycle(self):
        branch = settings_service.create_branch(name="Avondale", phone="+263 4 111 111", actor=self.admin)
        self.assertEqual([b.name for b in settings_service.list_branches()], ["Avondale"])

        with self.assertRaises(SettingsValidationError):
            settings_service.create_branch(name="Avondale")

        updated = settings_service.update_branch(branch.id, {"name": "Avondale Shops"}, actor=self.admin)
        self.assertEqual(updated.name, "Avondale Shops")

        with self.assertRaises(NotFoundError):
            settings_service.get_branch(branch.id + 100)

        branch_logs = db.session.query(AuditLog).filter_by(type=LogType.BRANCH).count()
        self.assertEqual(branch_logs, 2)


if __name__ == "__main__":
    unittest.main()
