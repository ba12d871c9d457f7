"""Factory Boy definition for :class:`selfstudy.models.user.User`."""

from __future__ import annotations

import factory

from selfstudy.core.security import hash_password
from selfstudy.models.user import ADMIN_ROLE, DEFAULT_ROLE, User
from tests.factories import BaseFactory

DEFAULT_PASSWORD = "Passw0rd!"


class UserFactory(BaseFactory):
    """Build persisted, active accounts with a known password.

    The hash is computed before the INSERT so nothing is left dirty in the
    session once the factory returns.
    """

    class Meta:
        model = User
        exclude = ("password",)

    class Params:
        admin = factory.Trait(role=ADMIN_ROLE)
        inactive = factory.Trait(is_active=False)

    id = None  # let autoincrement handle it
    password = DEFAULT_PASSWORD
    email = factory.Sequence(lambda n: f"learner{n}@example.com")
    full_name = factory.Faker("name")
    role = DEFAULT_ROLE
    target_band = None
    is_active = True
    password_hash = factory.LazyAttribute(lambda o: hash_password(o.password))
