from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..schemas import RegistrationNotice


class Notifier(Protocol):
    async def send_registration(self, notice: RegistrationNotice) -> None: ...
