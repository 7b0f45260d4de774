"""
Launch Checklist Engine - Shopify Admin GraphQL Catalog Client

Adapter from the catalog interface to the Shopify Admin API. One
ListingUpdate becomes at most one call per GraphQL mutation it needs; the
first mutation that reports userErrors stops the rest.
"""
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from ...errors import CatalogError
from ...models.domain import CollectionRef, ListingImage, ListingSnapshot, Metafield
from .base import FieldError, ListingUpdate, MutationResult

logger = logging.getLogger(__name__)

SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2025-01")

PRODUCT_QUERY = """
query GetProductForAudit($id: ID!) {
  product(id: $id) {
    id
    title
    descriptionHtml
    status
    vendor
    productType
    tags
    featuredImage { url }
    media(first: 50) {
      nodes {
        id
        mediaContentType
        alt
        preview { image { url } }
      }
    }
    seo { title description }
    collections(first: 50) { nodes { id title } }
    metafields(first: 50) { nodes { namespace key value } }
  }
}
"""

PRODUCT_UPDATE_MUTATION = """
mutation UpdateProduct($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id }
    userErrors { field message }
  }
}
"""

COLLECTION_ADD_PRODUCTS_MUTATION = """
mutation AddToCollection($id: ID!, $productIds: [ID!]!) {
  collectionAddProducts(id: $id, productIds: $productIds) {
    collection { id title }
    userErrors { field message }
  }
}
"""

UPDATE_MEDIA_MUTATION = """
mutation UpdateMediaAlt($productId: ID!, $media: [UpdateMediaInput!]!) {
  productUpdateMedia(productId: $productId, media: $media) {
    media { ... on MediaImage { id alt } }
    mediaUserErrors { field message }
  }
}
"""

CREATE_MEDIA_MUTATION = """
mutation CreateMedia($productId: ID!, $media: [CreateMediaInput!]!) {
  productCreateMedia(productId: $productId, media: $media) {
    media { ... on MediaImage { id } }
    mediaUserErrors { field message }
  }
}
"""


def to_product_gid(product_id: str) -> str:
    """Accept a numeric product id or a full GID."""
    if product_id.startswith("gid://"):
        return product_id
    return f"gid://shopify/Product/{product_id}"


def _nodes(connection: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not connection:
        return []
    return connection.get("nodes") or []


PRODUCT_INPUT_FIELDS = ("title", "description", "tags", "seo_title", "seo_description")


def _field_errors(raw: Optional[List[Dict[str, Any]]]) -> List[FieldError]:
    errors = []
    for err in raw or []:
        field = err.get("field")
        if isinstance(field, list):
            field = ".".join(str(part) for part in field)
        errors.append(FieldError(field=field, message=err.get("message", "Unknown error")))
    return errors


def snapshot_from_product(product: Dict[str, Any]) -> ListingSnapshot:
    """Convert a GraphQL `product` payload into a ListingSnapshot."""
    images = tuple(
        ListingImage(
            id=node["id"],
            url=((node.get("preview") or {}).get("image") or {}).get("url"),
            alt_text=node.get("alt"),
        )
        for node in _nodes(product.get("media"))
        if node.get("mediaContentType", "IMAGE") == "IMAGE"
    )
    seo = product.get("seo") or {}

    return ListingSnapshot(
        id=product["id"],
        title=product.get("title") or "",
        description_html=product.get("descriptionHtml") or "",
        vendor=product.get("vendor") or "",
        product_type=product.get("productType") or "",
        tags=tuple(product.get("tags") or ()),
        images=images,
        seo_title=seo.get("title"),
        seo_description=seo.get("description"),
        collections=tuple(
            CollectionRef(id=node["id"], title=node.get("title") or "")
            for node in _nodes(product.get("collections"))
        ),
        metafields=tuple(
            Metafield(namespace=node["namespace"], key=node["key"], value=node.get("value"))
            for node in _nodes(product.get("metafields"))
        ),
        status=product.get("status") or "ACTIVE",
        featured_image_url=(product.get("featuredImage") or {}).get("url"),
    )


class ShopifyCatalogClient:
    """
    Catalog client for one shop, authenticated with its offline access token.

    Pass `http_client` to share a connection pool across requests; otherwise
    a short-lived client is created per call.
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.endpoint = f"https://{shop_domain}/admin/api/{SHOPIFY_API_VERSION}/graphql.json"
        self._http_client = http_client
        self._timeout = timeout

    async def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }
        payload = {"query": query, "variables": variables}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.endpoint, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.endpoint, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Shopify request to {self.shop_domain} failed: {exc}")
            raise CatalogError(f"Catalog request failed: {exc}") from exc

        body = response.json()
        if body.get("errors"):
            first = body["errors"][0]
            message = first.get("message", "GraphQL error") if isinstance(first, dict) else str(first)
            raise CatalogError(message)
        return body.get("data") or {}

    async def fetch_listing(self, listing_id: str) -> Optional[ListingSnapshot]:
        data = await self._graphql(PRODUCT_QUERY, {"id": listing_id})
        product = data.get("product")
        if not product:
            logger.info(f"Product not found: {listing_id}")
            return None
        return snapshot_from_product(product)

    async def mutate_listing(self, listing_id: str, update: ListingUpdate) -> MutationResult:
        """
        Apply `update` as a sequence of GraphQL mutations.

        Steps are not transactional: when a later step fails, the fields
        written by earlier steps stay written and are reported in
        `applied_fields`. A transport error before anything was written is
        raised as CatalogError.
        """
        applied: List[str] = []
        try:
            errors = await self._apply_steps(listing_id, update, applied)
        except CatalogError as exc:
            if not applied:
                raise
            errors = [FieldError(field=None, message=str(exc))]

        if errors:
            if applied:
                logger.warning(f"Partial update on {listing_id}: applied {applied} before error")
            return MutationResult(success=False, errors=errors, applied_fields=applied)
        return MutationResult(success=True, applied_fields=applied)

    async def _apply_steps(self, listing_id: str, update: ListingUpdate, applied: List[str]) -> List[FieldError]:
        """Run each mutation in order, appending to `applied` as steps succeed."""
        product_input = self._product_input(listing_id, update)
        if product_input is not None:
            data = await self._graphql(PRODUCT_UPDATE_MUTATION, {"input": product_input})
            errors = _field_errors((data.get("productUpdate") or {}).get("userErrors"))
            if errors:
                return errors
            applied.extend(f for f in update.changed_fields() if f in PRODUCT_INPUT_FIELDS)

        for collection_id in update.add_collection_ids:
            data = await self._graphql(
                COLLECTION_ADD_PRODUCTS_MUTATION,
                {"id": collection_id, "productIds": [listing_id]},
            )
            errors = _field_errors((data.get("collectionAddProducts") or {}).get("userErrors"))
            if errors:
                return errors
        if update.add_collection_ids:
            applied.append("collections")

        if update.image_alt_texts:
            media = [{"id": media_id, "alt": alt} for media_id, alt in update.image_alt_texts.items()]
            data = await self._graphql(UPDATE_MEDIA_MUTATION, {"productId": listing_id, "media": media})
            errors = _field_errors((data.get("productUpdateMedia") or {}).get("mediaUserErrors"))
            if errors:
                return errors
            applied.append("image_alt")

        if update.media_urls:
            media = [{"originalSource": url, "mediaContentType": "IMAGE"} for url in update.media_urls]
            data = await self._graphql(CREATE_MEDIA_MUTATION, {"productId": listing_id, "media": media})
            errors = _field_errors((data.get("productCreateMedia") or {}).get("mediaUserErrors"))
            if errors:
                return errors
            applied.append("images")

        return []

    def _product_input(self, listing_id: str, update: ListingUpdate) -> Optional[Dict[str, Any]]:
        product_input: Dict[str, Any] = {"id": listing_id}
        if update.title is not None:
            product_input["title"] = update.title
        if update.description_html is not None:
            product_input["descriptionHtml"] = update.description_html
        if update.tags is not None:
            product_input["tags"] = list(update.tags)

        seo: Dict[str, str] = {}
        if update.seo_title is not None:
            seo["title"] = update.seo_title
        if update.seo_description is not None:
            seo["description"] = update.seo_description
        if seo:
            product_input["seo"] = seo

        return product_input if len(product_input) > 1 else None
