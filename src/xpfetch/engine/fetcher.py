"""Top-level content fetching.

One fetch makes two Guillotine calls, strictly in sequence:

1. metadata: content type, resolved path and component tree
2. content: one batched query combining the content-type query, the common
   query and the query of every component that registered one

Processors then run over the batched results, and the component list is
folded into a page tree. Failures never escape: they become a
:class:`FetchContentResult` with ``error`` set and ``meta`` filled in as far
as it is known.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from xpfetch.core.config import FetcherSettings
from xpfetch.core.constants import SITE_PATH_PREFIX, XP_ONLY_CONTENTTYPES, ComponentType, RenderMode, RequestType
from xpfetch.core.context import RequestContext
from xpfetch.core.exceptions import (
    FetchError,
    ForbiddenInContextError,
    IncompleteMetadataError,
    MissingContentError,
    MissingQueryError,
)
from xpfetch.core.paths import clean_content_path
from xpfetch.core.ports import ComponentRegistryPort
from xpfetch.core.types import (
    ComponentDescriptor,
    ErrorInfo,
    FetchContentResult,
    MetaData,
    PageComponent,
)
from xpfetch.engine.combiner import combine_multiple_queries
from xpfetch.engine.descriptors import (
    collect_component_descriptors,
    get_query_and_variables,
    normalize_components,
)
from xpfetch.engine.processors import annotate_components, apply_processors, stitch_results
from xpfetch.engine.regions import build_page
from xpfetch.infra.guillotine import GuillotineClient

logger = logging.getLogger(__name__)


def error_response(
    code: str = "500",
    message: str = "Unknown error",
    request_type: RequestType = RequestType.PAGE,
    render_mode: RenderMode = RenderMode.NEXT,
    content_path: str | None = None,
) -> FetchContentResult:
    return FetchContentResult(
        error=ErrorInfo(code=str(code), message=message),
        page=None,
        common=None,
        data=None,
        meta=MetaData(
            type="",
            path=content_path or "",
            request_type=request_type,
            render_mode=render_mode,
            can_render=False,
            catch_all=False,
        ),
    )


def create_meta_data(
    registry: ComponentRegistryPort,
    content_type: str,
    content_path: str,
    request_type: RequestType,
    render_mode: RenderMode,
    requested_component_path: str | None = None,
    page: PageComponent | None = None,
    components: Sequence[PageComponent] = (),
) -> MetaData:
    """Classify the resolved content for the rendering layer."""
    meta = MetaData(
        type=content_type,
        path=content_path,
        request_type=request_type,
        render_mode=render_mode,
        can_render=False,
        catch_all=False,
    )

    if requested_component_path:
        meta.requested_component = next(
            (cmp for cmp in components if cmp.path == requested_component_path), None
        )

    page_descriptor = page.page.descriptor if page is not None and page.page is not None else None
    type_definition = registry.get_content_type(content_type)
    if type_definition is not None and type_definition.view is not None and not type_definition.catch_all:
        meta.can_render = True
    elif page_descriptor:
        # A page with a descriptor is always rendered, showing "missing" if nothing is registered
        meta.can_render = True
    elif type_definition is not None and type_definition.view is not None:
        meta.can_render = True
        meta.catch_all = True

    return meta


class ContentFetcher:
    """Resolves a site-relative content path into data, meta and a page tree.

    The fetcher holds no per-request state; call it concurrently with a
    separate :class:`RequestContext` per request.
    """

    def __init__(
        self,
        settings: FetcherSettings,
        registry: ComponentRegistryPort,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self._http_client = http_client

    async def __call__(
        self,
        content_path: str | Sequence[str] | None,
        context: RequestContext | None = None,
    ) -> FetchContentResult:
        return await self.fetch_content(content_path, context)

    async def fetch_content(
        self,
        content_path: str | Sequence[str] | None,
        context: RequestContext | None = None,
    ) -> FetchContentResult:
        """Fetch everything needed to render ``content_path``.

        Args:
            content_path: Site-relative path, slash-delimited or pre-split
            context: The incoming request; defaults to an empty context

        Returns:
            The result; ``error`` is set on failure and ``meta`` is always present.

        """
        context = context or RequestContext()
        request_type = context.request_type
        render_mode = context.render_mode
        resolved_path = ""

        try:
            async with GuillotineClient(
                self.settings.content_api_url,
                timeout=self.settings.request_timeout,
                http_client=self._http_client,
            ) as client:
                site_relative_path = clean_content_path(content_path)
                requested_component_path = (
                    context.component_path if request_type == RequestType.COMPONENT else None
                )

                meta = await client.fetch_meta_data(SITE_PATH_PREFIX + site_relative_path)
                if meta is None:
                    raise MissingContentError
                resolved_path = meta.path or ""
                if not meta.type:
                    raise IncompleteMetadataError
                self._check_renderable(meta.type, render_mode)

                return await self._fetch_content_data(
                    client,
                    content_type=meta.type,
                    content_path=resolved_path,
                    site_relative_path=site_relative_path,
                    components=meta.components or [],
                    context=context,
                    request_type=request_type,
                    render_mode=render_mode,
                    requested_component_path=requested_component_path,
                )
        except FetchError as exc:
            logger.warning("Fetching %r failed with %s: %s", content_path, exc.code, exc.message)
            return error_response(
                **exc.to_dict(),
                request_type=request_type,
                render_mode=render_mode,
                content_path=resolved_path,
            )
        except Exception as exc:
            logger.exception("Unexpected error while fetching %r", content_path)
            return error_response("Local", str(exc), request_type, render_mode, resolved_path)

    def _check_renderable(self, content_type: str, render_mode: RenderMode) -> None:
        if render_mode == RenderMode.NEXT and not self.settings.is_dev_mode and content_type in XP_ONLY_CONTENTTYPES:
            raise ForbiddenInContextError(content_type, render_mode.value)

    async def _fetch_content_data(
        self,
        client: GuillotineClient,
        *,
        content_type: str,
        content_path: str,
        site_relative_path: str,
        components: list[PageComponent],
        context: RequestContext,
        request_type: RequestType,
        render_mode: RenderMode,
        requested_component_path: str | None,
    ) -> FetchContentResult:
        settings = self.settings
        components = normalize_components(components, settings.app_name, settings.app_name_dashed)

        page_component = next((cmp for cmp in components if cmp.type == ComponentType.PAGE), None)
        page_config = page_component.page.config if page_component is not None and page_component.page else None

        descriptors: list[ComponentDescriptor] = []

        content_type_definition = self.registry.get_content_type(content_type)
        content_query = get_query_and_variables(
            content_type,
            content_path,
            content_type_definition.query if content_type_definition else None,
            context,
            page_config,
        )
        if content_query is not None:
            descriptors.append(ComponentDescriptor(definition=content_type_definition, query_and_variables=content_query))

        common_query = get_query_and_variables(
            content_type, content_path, self.registry.get_common_query(), context, page_config
        )
        if common_query is not None:
            # Common data goes through the content type's processor as well
            descriptors.append(ComponentDescriptor(definition=content_type_definition, query_and_variables=common_query))

        descriptors.extend(collect_component_descriptors(components, self.registry, content_path, context))

        combined = combine_multiple_queries(descriptors)
        if combined.is_empty:
            raise MissingQueryError(content_type)

        results = await client.fetch_content_data(content_path, combined.query, combined.variables)
        contents: list[Any] = [results.get(alias) if alias else None for alias in combined.aliases]

        outcomes = await apply_processors(descriptors, contents, context)
        stitched = stitch_results(
            descriptors,
            outcomes,
            has_content_query=content_query is not None,
            has_common_query=common_query is not None,
        )

        annotated = annotate_components(components, stitched.component_outcomes)
        page = build_page(content_type, annotated) if annotated else None
        meta = create_meta_data(
            self.registry,
            content_type,
            site_relative_path,
            request_type,
            render_mode,
            requested_component_path,
            page,
            annotated,
        )

        return FetchContentResult(data=stitched.data, common=stitched.common, meta=meta, page=page)


def build_content_fetcher(
    settings: FetcherSettings,
    registry: ComponentRegistryPort,
    http_client: httpx.AsyncClient | None = None,
) -> ContentFetcher:
    """Configure and return a content fetcher.

    Args:
        settings: Endpoint and app settings
        registry: Lookup of the application's content types and components
        http_client: Optional shared HTTP client (e.g. one per process)

    """
    return ContentFetcher(settings, registry, http_client=http_client)
