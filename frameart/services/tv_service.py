from __future__ import annotations
import logging
import time
from typing import Iterable, List, Optional

from frameart.core.errors import InvalidRequestError, NotFoundError
from frameart.models.document import MetadataDocument
from frameart.models.image import ImageView, dedupe_tags
from frameart.models.tv import TVRecord, normalize_mac_address
from frameart.repositories.metadata_store import MetadataStore
from frameart.services.filtering import images_for_tv, tv_shortcuts
from frameart.utils.clock import utc_now_iso

logger = logging.getLogger(__name__)


class TVService:
    def __init__(self, store: MetadataStore):
        self.store = store

    # --------------- reads ---------------
    def list(self) -> List[TVRecord]:
        return list(self.store.load().tvs)

    def get(self, tv_id: str) -> TVRecord:
        tv = self.store.load().find_tv(tv_id)
        if tv is None:
            raise NotFoundError(f"TV {tv_id} not found")
        return tv

    def images_for(self, tv_id: str) -> List[ImageView]:
        doc = self.store.load()
        tv = doc.find_tv(tv_id)
        if tv is None:
            raise NotFoundError(f"TV {tv_id} not found")
        return [ImageView(filename=k, record=v) for k, v in images_for_tv(doc.images, tv).items()]

    def shortcuts(self, selected_tags: Iterable[str]) -> List[dict]:
        return tv_shortcuts(self.store.load(), selected_tags)

    # --------------- writes ---------------
    def add(
        self,
        name: str,
        ip: str,
        home: Optional[str] = None,
        mac: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> TVRecord:
        if not name or not name.strip() or not ip or not ip.strip():
            raise InvalidRequestError("Name and IP are required")
        tag_list = dedupe_tags(tags)

        def apply(doc: MetadataDocument) -> TVRecord:
            # Millisecond ids, bumped on collision when two TVs are added in the same tick.
            taken = {tv.id for tv in doc.tvs}
            stamp = int(time.time() * 1000)
            while str(stamp) in taken:
                stamp += 1
            fields = {"id": str(stamp), "name": name.strip(), "ip": ip.strip(),
                      "added": utc_now_iso(), "tags": tag_list}
            if home is not None:
                fields["home"] = home
            if mac is not None:
                fields["mac"] = normalize_mac_address(mac)
            tv = TVRecord(**fields)
            doc.ensure_tags(tag_list)
            doc.tvs = doc.tvs + [tv]
            return tv

        tv = self.store.mutate(apply)
        logger.info(f"✓ Added TV {tv.name} ({tv.ip}) as {tv.id}")
        return tv

    def update(
        self,
        tv_id: str,
        name: Optional[str] = None,
        ip: Optional[str] = None,
        home: Optional[str] = None,
        mac: Optional[str] = None,
    ) -> TVRecord:
        def apply(doc: MetadataDocument) -> TVRecord:
            tv = doc.find_tv(tv_id)
            if tv is None:
                raise NotFoundError(f"TV {tv_id} not found")
            if name is not None:
                if not name.strip():
                    raise InvalidRequestError("Name cannot be empty")
                tv.name = name.strip()
            if ip is not None:
                if not ip.strip():
                    raise InvalidRequestError("IP cannot be empty")
                tv.ip = ip.strip()
            if home is not None:
                tv.home = home
            if mac is not None:
                tv.mac = normalize_mac_address(mac)
            return tv

        return self.store.mutate(apply)

    def update_tags(self, tv_id: str, tags: Iterable[str]) -> TVRecord:
        tag_list = dedupe_tags(tags)

        def apply(doc: MetadataDocument) -> TVRecord:
            tv = doc.find_tv(tv_id)
            if tv is None:
                raise NotFoundError(f"TV {tv_id} not found")
            doc.ensure_tags(tag_list)
            tv.tags = tag_list
            return tv

        return self.store.mutate(apply)

    def delete(self, tv_id: str) -> None:
        def apply(doc: MetadataDocument) -> None:
            if doc.find_tv(tv_id) is None:
                raise NotFoundError(f"TV {tv_id} not found")
            doc.tvs = [tv for tv in doc.tvs if tv.id != tv_id]

        self.store.mutate(apply)
        logger.info(f"✓ Deleted TV {tv_id}")
