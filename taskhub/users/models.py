from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import CharField
from django.db.models import EmailField
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Default custom user model for taskhub.
    ``name`` is what collaborators see next to presence indicators.
    """

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Display Name"), blank=True, max_length=255)
    email = EmailField(_("email address"), unique=True)
    # Audit timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        # Fall back to the structured name parts, then the username
        if not self.name:
            full_name = f"{self.first_name} {self.last_name}".strip()
            self.name = full_name or self.username
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.name or self.username
