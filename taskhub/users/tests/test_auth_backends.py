import pytest
from django.contrib.auth import get_user_model

from taskhub.users.auth_backends import UsernameOrEmailBackend

pytestmark = pytest.mark.django_db
User = get_user_model()


class TestUsernameOrEmailBackend:
    def setup_method(self):
        self.backend = UsernameOrEmailBackend()
        self.password = "Sahm1232"  # noqa: S105  # Allow hardcoded password in test
        self.user = User.objects.create_user(
            username="test",
            email="test@gmail.com",
            password=self.password,
        )

    @pytest.mark.parametrize(
        "login",
        ["test", "TEST", "test@gmail.com", "Test@Gmail.com"],
    )
    def test_authenticate_with_username_or_email(self, login):
        user = self.backend.authenticate(None, username=login, password=self.password)
        assert user == self.user

    def test_authenticate_with_email_keyword(self):
        user = self.backend.authenticate(
            None,
            email="test@gmail.com",
            password=self.password,
        )
        assert user == self.user

    @pytest.mark.parametrize("login", ["wronguser", "wrong@gmail.com", ""])
    def test_unknown_login(self, login):
        user = self.backend.authenticate(None, username=login, password=self.password)
        assert user is None

    def test_wrong_password(self):
        user = self.backend.authenticate(
            None,
            username="test@gmail.com",
            password="wrongpass",  # noqa: S106
        )
        assert user is None

    def test_inactive_user_is_rejected(self):
        self.user.is_active = False
        self.user.save(update_fields=["is_active"])
        user = self.backend.authenticate(None, username="test", password=self.password)
        assert user is None
