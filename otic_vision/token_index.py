"""
Per-tenant token store with a FAISS histogram index.

Reference implementation of the catalog/token store the match service
reads from:
    - Records ({id, metadata, token}) kept per tenant, tokens in JSON form
    - FAISS inner-product index over L2-normalized histograms, built
      lazily per tenant, used to shortlist candidates by histogram cosine
    - save()/load() to a directory (JSON manifest + .index files)
    - build_index() to register a directory of product photos

Tokens are stored serialized and only parsed when needed, so a corrupt
row surfaces at match time as a skipped candidate rather than breaking
the whole tenant on load.
"""

import json
import logging
import os
import threading
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import faiss
import numpy as np

from .config import TokenConfig
from .errors import CorruptTokenError, ImageLoadError
from .histograms import normalize_for_index, search_histogram_index
from .models import RGBToken
from .preprocessing import load_image, resize_image
from .token import generate_token

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "tokens.json"
IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.webp'}


class TokenIndex:
    """In-process catalog of RGB tokens, grouped by tenant."""

    def __init__(self):
        self._records: Dict[Any, Dict[Any, Dict[str, Any]]] = {}
        # tenant -> (faiss index, product ids in index order)
        self._indexes: Dict[Any, Tuple[faiss.Index, List[Any]]] = {}
        self._lock = threading.RLock()

    def tenants(self) -> List[Any]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(r) for r in self._records.values())

    def add(self, tenant_id: Any, product_id: Any, token: Any,
            metadata: Optional[Mapping[str, Any]] = None) -> None:
        """
        Store a product's token, replacing any previous one for that id.

        Args:
            token: RGBToken, or its dict/JSON form (stored as given).
        """
        if isinstance(token, RGBToken):
            payload = token.to_json()
        elif isinstance(token, str):
            payload = token
        else:
            payload = json.dumps(token)

        with self._lock:
            self._records.setdefault(tenant_id, {})[product_id] = {
                "id": product_id,
                "metadata": dict(metadata or {}),
                "token": payload,
            }
            self._indexes.pop(tenant_id, None)

    def get_all_tokens(self, tenant_id: Any) -> List[Dict[str, Any]]:
        """All records of a tenant (empty list for unknown tenants)."""
        with self._lock:
            records = self._records.get(tenant_id, {})
            return [
                {"id": r["id"], "metadata": dict(r["metadata"]), "token": r["token"]}
                for r in records.values()
            ]

    def _tenant_index(self, tenant_id: Any) -> Tuple[Optional[faiss.Index], List[Any]]:
        with self._lock:
            if tenant_id in self._indexes:
                return self._indexes[tenant_id]

            vectors = []
            ids = []
            for product_id, record in self._records.get(tenant_id, {}).items():
                try:
                    token = RGBToken.coerce(record["token"])
                except CorruptTokenError as e:
                    logger.warning(f"Not indexing {product_id}: {e}")
                    continue
                if token.is_degenerate:
                    continue
                if vectors and token.histogram.size != vectors[0].size:
                    logger.warning(
                        f"Not indexing {product_id}: histogram size "
                        f"{token.histogram.size} != {vectors[0].size}"
                    )
                    continue
                vectors.append(normalize_for_index(token.histogram))
                ids.append(product_id)

            if not vectors:
                entry = (None, [])
            else:
                data = np.vstack(vectors).astype(np.float32)
                index = faiss.IndexFlatIP(data.shape[1])
                index.add(data)
                entry = (index, ids)
                logger.info(
                    f"Built histogram index for tenant {tenant_id}: "
                    f"{index.ntotal} vectors, {index.d}d"
                )

            self._indexes[tenant_id] = entry
            return entry

    def indexed_ids(self, tenant_id: Any) -> Set[Any]:
        """Product ids that made it into the tenant's histogram index."""
        return set(self._tenant_index(tenant_id)[1])

    def shortlist(self, tenant_id: Any, token: RGBToken, k: int) -> List[Any]:
        """
        Product ids with the highest histogram cosine similarity to token.

        Returns:
            Up to k ids, best first. Empty if the tenant has no indexed
            tokens, the query is degenerate, or dimensions differ.
        """
        index, ids = self._tenant_index(tenant_id)
        if index is None or token.is_degenerate:
            return []

        try:
            _, neighbors = search_histogram_index(index, token.histogram, k)
        except ValueError as e:
            logger.error(f"Histogram shortlist failed: {e}")
            return []

        return [ids[i] for i in neighbors[0] if 0 <= i < len(ids)]

    def save(self, directory: str) -> str:
        """
        Write all tenants to directory.

        Returns:
            Path of the JSON manifest.
        """
        os.makedirs(directory, exist_ok=True)
        tenants = []

        with self._lock:
            for n, tenant_id in enumerate(self._records):
                index, ids = self._tenant_index(tenant_id)
                index_file = None
                if index is not None:
                    index_file = f"tenant_{n}.index"
                    faiss.write_index(index, os.path.join(directory, index_file))
                tenants.append({
                    "tenant_id": tenant_id,
                    "index_file": index_file,
                    "indexed_ids": ids,
                    "records": list(self._records[tenant_id].values()),
                })

        manifest_path = os.path.join(directory, MANIFEST_FILENAME)
        with open(manifest_path, 'w', encoding='utf-8') as f:
            json.dump({"tenants": tenants}, f)

        logger.info(f"Saved {len(tenants)} tenants, {len(self)} tokens to {directory}")
        return manifest_path

    @classmethod
    def load(cls, directory: str) -> "TokenIndex":
        """Load a store written by save()."""
        with open(os.path.join(directory, MANIFEST_FILENAME), 'r', encoding='utf-8') as f:
            manifest = json.load(f)

        store = cls()
        for tenant in manifest.get("tenants", []):
            tenant_id = tenant["tenant_id"]
            store._records[tenant_id] = {r["id"]: r for r in tenant["records"]}

            index_file = tenant.get("index_file")
            if index_file and os.path.exists(os.path.join(directory, index_file)):
                index = faiss.read_index(os.path.join(directory, index_file))
                store._indexes[tenant_id] = (index, list(tenant["indexed_ids"]))

        logger.info(f"Loaded {len(store)} tokens for {len(store._records)} tenants")
        return store


def build_index(image_dir: str,
                tenant_id: Any,
                index: Optional[TokenIndex] = None,
                config: Optional[TokenConfig] = None,
                metadata_path: Optional[str] = None) -> dict:
    """
    Register every product image in a directory under one tenant.

    Args:
        image_dir: Directory containing product images.
        tenant_id: Tenant that owns the products.
        index: Store to add to (a new one is created if omitted).
        config: Token generation settings.
        metadata_path: Optional JSON list of entries with a 'filename'
            field and optionally an 'id'; remaining fields become the
            product metadata. If not provided, scans image_dir and uses
            the file stem as product id.

    Returns:
        Dict with 'success', 'index', 'processed' and 'errors'.
    """
    index = index if index is not None else TokenIndex()
    config = config or TokenConfig()

    if metadata_path and os.path.exists(metadata_path):
        with open(metadata_path, 'r', encoding='utf-8') as f:
            entries = [e for e in json.load(f) if e.get('filename')]
    else:
        entries = [
            {"filename": f} for f in sorted(os.listdir(image_dir))
            if os.path.splitext(f)[1].lower() in IMAGE_EXTENSIONS
        ]

    logger.info(f"Building token index from {len(entries)} images in {image_dir}")

    processed = 0
    errors = 0
    for entry in entries:
        filename = entry["filename"]
        product_id = entry.get("id", os.path.splitext(filename)[0])
        metadata = {k: v for k, v in entry.items() if k not in ("id", "filename")}
        metadata.setdefault("filename", filename)

        try:
            image = resize_image(load_image(os.path.join(image_dir, filename)))
        except ImageLoadError as e:
            logger.warning(f"Skipping {filename}: {e}")
            errors += 1
            continue

        index.add(tenant_id, product_id, generate_token(image, config), metadata)
        processed += 1

    logger.info(f"Token index built: {processed} images, {errors} errors")

    return {
        "success": processed > 0,
        "index": index,
        "processed": processed,
        "errors": errors,
    }
