from __future__ import annotations

import logging
from typing import List

from sqlalchemy import func, select

from nfme_identity.chain import Chain
from nfme_identity.crypto import to_address

from .db import session_scope
from .models import RelayedEvent

log = logging.getLogger(__name__)

INDEXED_EVENTS = ("IdentityDeployed", "OwnerActionRelayed")


class EventIndexer:
    """Copies an identity factory's channel events into the database.

    `sync()` is incremental: it resumes after the highest log index already
    stored for the factory, so calling it repeatedly never duplicates rows.
    """

    def __init__(self, chain: Chain, factory_address: str, Session):
        self.chain = chain
        self.factory = to_address(factory_address)
        self.Session = Session

    def sync(self) -> int:
        with session_scope(self.Session) as s:
            last = s.scalar(select(func.max(RelayedEvent.log_index)).where(RelayedEvent.factory == self.factory))
            start = 0 if last is None else last + 1
            added = 0
            for event in self.chain.get_logs(self.factory, from_index=start):
                if event.name not in INDEXED_EVENTS:
                    continue
                s.add(self._to_row(event))
                added += 1
        if added:
            log.info("indexed %d events from factory %s", added, self.factory)
        return added

    def events_for(self, identity: str) -> List[RelayedEvent]:
        with session_scope(self.Session) as s:
            return list(
                s.scalars(
                    select(RelayedEvent)
                    .where(RelayedEvent.factory == self.factory, RelayedEvent.identity == to_address(identity))
                    .order_by(RelayedEvent.log_index)
                ).all()
            )

    def _to_row(self, event) -> RelayedEvent:
        if event.name == "IdentityDeployed":
            return RelayedEvent(
                factory=self.factory,
                log_index=event.log_index,
                name=event.name,
                identity=event.args["identity"],
                owner=event.args["owner"],
                actor=None,
                action="deployed",
                block_number=event.block_number,
            )
        return RelayedEvent(
            factory=self.factory,
            log_index=event.log_index,
            name=event.name,
            identity=event.args["identity"],
            owner=event.args["owner"],
            actor=event.args["actor"],
            action=event.args["action"],
            block_number=event.block_number,
        )
