import unittest
from datetime import datetime, timedelta

from fastapi.testclient import TestClient

from storefront.main import create_app
from storefront.models import Customer
from storefront.security import decode_jwt, verify_password
from storefront.services.auth_service import request_password_reset
from tests.support import make_settings

REGISTRATION = {
    "name": "Meera N",
    "email": "Meera@Example.com",
    "phone": "9123456789",
    "password": "s3cret-pass",
    "confirm_password": "s3cret-pass",
}


class TestRegistration(unittest.TestCase):
    def setUp(self):
        self.settings = make_settings()
        self.app = create_app(self.settings)
        self.client = TestClient(self.app)

    def test_register_returns_customer_and_token(self):
        r = self.client.post("/auth/register", json=REGISTRATION)
        self.assertEqual(r.status_code, 201, r.text)
        data = r.json()
        self.assertEqual(data["customer"]["email"], "meera@example.com")
        self.assertEqual(data["token_type"], "bearer")

        claims = decode_jwt(data["access_token"], self.settings.JWT_SECRET, self.settings.JWT_ALGORITHM)
        self.assertEqual(claims["sub"], str(data["customer"]["id"]))
        self.assertEqual(claims["type"], "access")

    def test_password_mismatch(self):
        r = self.client.post("/auth/register", json={**REGISTRATION, "confirm_password": "different"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["detail"], "Passwords do not match")

    def test_duplicate_email_is_case_insensitive(self):
        self.client.post("/auth/register", json=REGISTRATION)
        r = self.client.post("/auth/register", json={**REGISTRATION, "email": "meera@example.com"})
        self.assertEqual(r.status_code, 409)

    def test_invalid_email_is_422(self):
        r = self.client.post("/auth/register", json={**REGISTRATION, "email": "not-an-email"})
        self.assertEqual(r.status_code, 422)


class TestPasswordReset(unittest.TestCase):
    def setUp(self):
        self.settings = make_settings()
        self.app = create_app(self.settings)
        self.client = TestClient(self.app)
        self.client.post("/auth/register", json=REGISTRATION)

    def issue_token(self):
        db = self.app.state.session_factory()
        try:
            return request_password_reset(db, "meera@example.com", self.settings)
        finally:
            db.close()

    def load_customer(self):
        db = self.app.state.session_factory()
        try:
            return db.query(Customer).filter(Customer.email == "meera@example.com").one()
        finally:
            db.close()

    def test_forgot_password_does_not_reveal_accounts(self):
        known = self.client.post("/auth/forgot-password", json={"email": "meera@example.com"})
        unknown = self.client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
        self.assertEqual(known.status_code, 200)
        self.assertEqual(known.json(), unknown.json())
        self.assertIsNotNone(self.load_customer().reset_token_hash)

    def test_reset_with_token_changes_password_once(self):
        token = self.issue_token()
        r = self.client.post("/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
        self.assertEqual(r.status_code, 200, r.text)
        self.assertTrue(verify_password("brand-new-pass", self.load_customer().hashed_password))

        again = self.client.post("/auth/reset-password", json={"token": token, "password": "another-pass"})
        self.assertEqual(again.status_code, 400)

    def test_unknown_token_is_rejected(self):
        r = self.client.post("/auth/reset-password", json={"token": "x" * 43, "password": "brand-new-pass"})
        self.assertEqual(r.status_code, 400)

    def test_expired_token_is_rejected(self):
        token = self.issue_token()
        db = self.app.state.session_factory()
        try:
            customer = db.query(Customer).filter(Customer.email == "meera@example.com").one()
            customer.reset_token_expires_at = datetime.utcnow() - timedelta(minutes=1)
            db.commit()
        finally:
            db.close()

        r = self.client.post("/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
        self.assertEqual(r.status_code, 400)


if __name__ == "__main__":
    unittest.main()
