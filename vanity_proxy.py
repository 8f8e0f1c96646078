from dataclasses import dataclass
import logging
from string import Template
from typing import Annotated, Literal, Optional, Type

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from pydantic import model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict, YamlConfigSettingsSource
from starlette.convertors import Convertor, register_url_convertor
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from pkt_lines import PktLineError
from ref_versions import ACCEPTED_FORMS
from refs_rewriter import VersionNotFound, rewrite_refs
from repo_paths import PACKAGE_REGEX, Repo, RepoRoot, split_package
from upstream_refs import DEFAULT_FETCH_TIMEOUT, RefsFetcher, RepositoryNotFound, UpstreamError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(yaml_file='config.yaml', env_prefix='VANITY_', frozen=True)

    repo_root: str
    vanity_root: str
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    # Only annotated tags count, and unversioned requests fall back to the
    # default branch only when the repository has no version refs at all.
    strict_refs: bool = False
    host: str = "0.0.0.0"
    port: int = 8080
    socket: Optional[str] = None
    log_level: Literal["critical", "error", "warning", "info", "debug"] = "info"

    @model_validator(mode='after')
    def check_roots(self) -> 'Settings':
        RepoRoot.from_urls(self.repo_root, self.vanity_root)
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, YamlConfigSettingsSource(settings_cls))


NO_CACHE_HEADERS = {
    "Expires": "Fri, 01 Jan 1980 00:00:00 GMT",
    "Pragma": "no-cache",
    "Cache-Control": "no-cache, max-age=0, must-revalidate",
}
ADVERTISEMENT_MEDIA_TYPE = 'application/x-git-upload-pack-advertisement'

GO_GET_TEMPLATE = Template("""
<html>
<head>
<meta name="go-import" content="$vanity_path git $vanity_url">
<meta name="go-source" content="$vanity_path _ $repo_url/tree/$tree{/dir} $repo_url/blob/$tree{/dir}/{file}#L{line}">
</head>
<body>
go get $vanity_path
</body>
</html>
""")

logger = logging.getLogger(__name__)


class VanityPackageConvertor(Convertor[str]):
    regex = PACKAGE_REGEX

    def convert(self, value: str) -> str:
        return str(value)

    def to_string(self, value: str) -> str:
        return str(value)

register_url_convertor("vanity_package", VanityPackageConvertor())


@dataclass(frozen=True)
class ResolvedRepo:
    repo: Repo
    refs: bytes


async def resolve_repo(package: str, request: Request) -> ResolvedRepo:
    settings: Settings = request.app.state.settings
    root: RepoRoot = request.app.state.repo_root
    fetcher: RefsFetcher = request.app.state.fetcher
    client = request.client.host if request.client else '-'
    logger.info("%s requested %s", client, request.url)

    try:
        repo = root.new_repo(*split_package(package))
    except ValueError:
        raise HTTPException(status_code=500, detail="Failed to parse request path")

    try:
        original = await fetcher.fetch(repo.repo_root)
        result = rewrite_refs(original, repo.requested_version, strict=settings.strict_refs)
    except RepositoryNotFound:
        raise HTTPException(status_code=404, detail=f"Git repository not found at https://{repo.repo_root}")
    except VersionNotFound:
        raise HTTPException(
            status_code=404,
            detail=f"Git repository at https://{repo.repo_root} has no tag or branch matching "
                   f"{repo.requested_version}; accepted version forms are {ACCEPTED_FORMS}",
        )
    except (UpstreamError, PktLineError) as e:
        raise HTTPException(status_code=502, detail=f"Cannot obtain refs from Git: {e}")

    repo.set_versions(result.versions, result.version)
    logger.debug("%s resolved to %s, available versions: %s", repo.vanity_path, repo.git_tree,
                 ' '.join(map(str, repo.all_versions)))
    return ResolvedRepo(repo, result.data)


Resolved = Annotated[ResolvedRepo, Depends(resolve_repo)]

router = APIRouter()


@router.get("/health-check")
async def health_check() -> PlainTextResponse:
    return PlainTextResponse("ok")


@router.get("/{package:vanity_package}/info/refs")
async def git_info_refs(resolved: Resolved) -> Response:
    return Response(resolved.refs, media_type=ADVERTISEMENT_MEDIA_TYPE, headers=NO_CACHE_HEADERS)


@router.api_route("/{package:vanity_package}/git-upload-pack", methods=["GET", "POST"])
async def git_upload_pack(resolved: Resolved) -> Response:
    return RedirectResponse(resolved.repo.upload_pack_url, status_code=301)


def render_go_get(repo: Repo) -> str:
    return GO_GET_TEMPLATE.substitute(
        vanity_path=repo.vanity_path,
        vanity_url=repo.vanity_url,
        repo_url=repo.repo_root_url,
        tree=repo.git_tree,
    )


@router.get("/{package:vanity_package}")
@router.get("/{package:vanity_package}/{subpath:path}")
async def go_get_page(resolved: Resolved, go_get: Annotated[Optional[str], Query(alias='go-get')] = None) -> Response:
    if go_get != '1':
        raise HTTPException(status_code=404, detail="Missing ?go-get=1 parameter.")
    return HTMLResponse(render_go_get(resolved.repo))


@router.get("/")
async def missing_package() -> Response:
    raise HTTPException(status_code=404, detail="Missing package name.")


@router.api_route("/{path:path}", methods=["GET", "POST"])
async def malformed_path(path: str) -> Response:
    raise HTTPException(status_code=500, detail="Failed to parse request path")


async def plain_text_http_exception(request: Request, exc: StarletteHTTPException) -> Response:
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


def create_app(settings: Settings, fetcher: Optional[RefsFetcher] = None) -> FastAPI:
    app = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)
    app.state.settings = settings
    app.state.repo_root = RepoRoot.from_urls(settings.repo_root, settings.vanity_root)
    app.state.fetcher = fetcher or RefsFetcher(timeout=settings.fetch_timeout)
    app.add_exception_handler(StarletteHTTPException, plain_text_http_exception)
    app.include_router(router)
    return app


def main() -> None:
    settings = Settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app(settings)
    listen_addr = settings.socket or f"{settings.host}:{settings.port}"
    logger.info("Listening at %s. %s -> %s", listen_addr, settings.vanity_root, settings.repo_root)
    if settings.socket:
        uvicorn.run(app, uds=settings.socket, log_level=settings.log_level)
    else:
        uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == '__main__':
    main()
