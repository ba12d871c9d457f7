"""Factory Boy definition for :class:`selfstudy.models.refresh_token.RefreshToken`."""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime, timedelta

import factory

from selfstudy.models.refresh_token import RefreshToken
from tests.factories import BaseFactory
from tests.factories.user import UserFactory


class RefreshTokenFactory(BaseFactory):
    """Persist a token record; ``token_hash`` is a digest of a throwaway secret."""

    class Meta:
        model = RefreshToken

    id = None
    user = factory.SubFactory(UserFactory)
    user_id = factory.LazyAttribute(lambda o: o.user.id)
    token_hash = factory.Sequence(lambda n: hashlib.sha256(f"secret-{n}".encode()).hexdigest())
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    expires_at = factory.LazyAttribute(lambda o: o.created_at + timedelta(days=7))
    revoked_at = None
    replaced_by_token_hash = None

    class Params:
        expired = factory.Trait(
            created_at=factory.LazyFunction(lambda: datetime.now(UTC) - timedelta(days=8)),
        )
        revoked = factory.Trait(revoked_at=factory.LazyFunction(lambda: datetime.now(UTC)))

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        # ``user`` is only a builder for ``user_id``; the model has no relationship
        kwargs.pop("user", None)
        return super()._create(model_class, *args, **kwargs)
