"""Learn pages and images served through the proxy with local caching."""

from __future__ import annotations

from overleaf_web.core.concurrency import CancellationToken, PeriodicTask, TaskGroup
from overleaf_web.core.errors import NotFoundError, tag
from overleaf_web.core.logging import get_logger
from overleaf_web.learn.content import PageContent
from overleaf_web.learn.images import ImageCache
from overleaf_web.learn.pages import PageCache
from overleaf_web.learn.request import LearnImageResponse, LearnPageRequest, LearnPageResponse

logger = get_logger(__name__)

CONTENTS_PAGE = "Contents"


class LearnManager:
    """Owns both caches and the background sweep of expired images."""

    def __init__(self, pages: PageCache, images: ImageCache, sweep_interval: float = 600.0) -> None:
        self.pages = pages
        self.images = images
        self._sweeper = PeriodicTask("learn-image-sweep", sweep_interval, self.images.sweep)

    def start(self) -> None:
        try:
            self.images.fill()
        except Exception as exc:
            logger.warning("Cannot seed learn image cache: %s", exc)
        self._sweeper.start()

    def stop(self) -> None:
        self._sweeper.stop()

    @property
    def running(self) -> bool:
        return self._sweeper.running

    def learn_page(
        self,
        request: LearnPageRequest,
        token: CancellationToken | None = None,
    ) -> LearnPageResponse:
        request.preprocess()
        request.validate()

        response = LearnPageResponse()
        results: dict[str, PageContent] = {}

        def get_contents() -> None:
            try:
                content, _ = self.pages.get(CONTENTS_PAGE, group.token)
            except Exception as exc:
                raise tag(exc, "cannot get contents") from exc
            results["contents"] = content

        def get_page() -> None:
            try:
                content, hit = self.pages.get(request.wiki_page(), group.token)
            except Exception as exc:
                raise tag(exc, "cannot get page") from exc
            results["page"] = content
            if hit:
                response.age = max(0, int(self.pages.age_of(content)))

        group = TaskGroup(2, parent=token, name="learn-page")
        group.go(get_contents)
        group.go(get_page)
        group.wait()

        page = results["page"]
        if page.redirect:
            response.redirect = page.redirect
            return response
        if not page.exists:
            raise NotFoundError()
        response.title = page.title
        response.title_locale = page.title_locale
        response.page_html = page.html
        response.contents_html = results["contents"].html
        return response

    def proxy_image(self, path: str, token: CancellationToken | None = None) -> LearnImageResponse:
        return self.images.proxy_image(path, token)


__all__ = ["LearnManager", "CONTENTS_PAGE"]
