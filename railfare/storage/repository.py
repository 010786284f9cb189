from typing import List, Optional

from railfare.storage.document_store import CollectionName, DocumentStore
from railfare.types import RawFare, RoundTrip


class FareRepository:
    """Typed access to the raw-fare and round-trip collections.

    Both collections are only ever replaced as a whole.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def load_fares(self) -> List[RawFare]:
        return [RawFare.model_validate(d) for d in self.store.find(CollectionName.TICKETS)]

    def replace_fares(self, fares: List[RawFare]) -> int:
        return self.store.replace(CollectionName.TICKETS, [f.model_dump(mode="json") for f in fares])

    def load_round_trips(self) -> List[RoundTrip]:
        return [RoundTrip.model_validate(d) for d in self.store.find(CollectionName.ROUNDTRIPS)]

    def replace_round_trips(self, round_trips: List[RoundTrip]) -> int:
        return self.store.replace(
            CollectionName.ROUNDTRIPS, [rt.model_dump(mode="json") for rt in round_trips]
        )

    def get_round_trip(self, roundtrip_id: str) -> Optional[RoundTrip]:
        docs = self.store.find(CollectionName.ROUNDTRIPS, {"id": roundtrip_id})
        return RoundTrip.model_validate(docs[0]) if docs else None
