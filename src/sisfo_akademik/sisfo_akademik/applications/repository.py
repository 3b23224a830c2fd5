from __future__ import annotations

import uuid
from typing import Callable, Optional, Protocol, Sequence

from ..events.model import OutboxEvent
from .model import Application, ApplicationFilter


class ApplicationRepository(Protocol):
    def create(self, application: Application) -> None:
        """Insert; raises ``DuplicateKeyError`` on a registration-number clash."""

        raise NotImplementedError

    def get_by_id(self, application_id: uuid.UUID) -> Optional[Application]:
        raise NotImplementedError

    def get_by_registration_number(self, registration_number: str) -> Optional[Application]:
        raise NotImplementedError

    def list(self, application_filter: ApplicationFilter) -> Sequence[Application]:
        """Matching applications, newest first."""

        raise NotImplementedError

    def update(self, application: Application) -> Application:
        """Compare-and-set on ``version``.

        Returns the stored copy with the bumped version; raises
        ``StaleWriteError`` when another writer got there first.
        """

        raise NotImplementedError

    def mark_registered(
        self,
        application: Application,
        event: OutboxEvent,
        *,
        publish: Optional[Callable[[OutboxEvent], OutboxEvent]] = None,
    ) -> Application:
        """Persist the registered status and store ``event`` in one transaction.

        With ``publish`` the event is handed to it after the version check and
        before commit; whatever it raises rolls the whole transaction back, and
        the event it returns is what gets stored.
        """

        raise NotImplementedError

    def delete(self, application_id: uuid.UUID) -> bool:
        raise NotImplementedError
