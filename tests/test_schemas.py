import unittest

from pydantic import ValidationError

from api.userdata.schemas import CreateUserRequest


class SchemaTests(unittest.TestCase):
    def test_name_whitespace_normalized(self):
        payload = CreateUserRequest(name="  Test   User ", email=" test@example.com ")
        self.assertEqual(payload.name, "Test User")
        self.assertEqual(payload.email, "test@example.com")

    def test_blank_name_rejected(self):
        with self.assertRaises(ValidationError):
            CreateUserRequest(name="   ", email="test@example.com")

    def test_email_requires_at_sign(self):
        with self.assertRaises(ValidationError):
            CreateUserRequest(name="Test", email="not-an-email")
        with self.assertRaises(ValidationError):
            CreateUserRequest(name="Test", email="@example.com")


if __name__ == "__main__":
    unittest.main()
