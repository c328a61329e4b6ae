# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


def default_preferences():
    return {
        "theme": "light",
        "language": "fr",
        "notifications": {"email": True, "push": True},
    }


class User(AbstractUser):
    """
    Identity used by the tracker. Projects, tickets and comments only ever
    reference users by primary key; nothing in the tracker mutates them.
    """
    THEME_LIGHT = "light"
    THEME_DARK = "dark"

    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    avatar = models.CharField(max_length=1024, blank=True, null=True)

    preferences = models.JSONField(default=default_preferences, blank=True)

    def __str__(self):
        return self.username

    @property
    def display_name(self):
        return self.get_full_name() or self.username
