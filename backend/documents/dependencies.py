"""Process-wide service instances.

Built lazily once per process and reset whenever Django settings change
(``override_settings`` in tests).
"""

from __future__ import annotations

from functools import lru_cache

from django.conf import settings

from .gathering import SubjectDirectory
from .issuance import IssuanceService
from .ledger import DocumentLedger
from .rendering import Letterhead, TemplateRenderer, load_pdf_backend
from .storage import ArtifactStore, build_artifact_store


@lru_cache(maxsize=None)
def get_ledger() -> DocumentLedger:
    return DocumentLedger()


@lru_cache(maxsize=None)
def get_artifact_store() -> ArtifactStore:
    return build_artifact_store()


@lru_cache(maxsize=None)
def get_renderer() -> TemplateRenderer:
    return TemplateRenderer(
        letterhead=Letterhead.from_settings(),
        verify_base_url=settings.PUBLIC_SITE_URL,
        pdf_backend=load_pdf_backend(),
    )


@lru_cache(maxsize=None)
def get_directory() -> SubjectDirectory:
    return SubjectDirectory()


@lru_cache(maxsize=None)
def get_issuance_service() -> IssuanceService:
    return IssuanceService(
        ledger=get_ledger(),
        store=get_artifact_store(),
        renderer=get_renderer(),
        directory=get_directory(),
        url_ttl_seconds=settings.DOCUMENT_DOWNLOAD_URL_TTL_SECONDS,
    )


@lru_cache(maxsize=None)
def get_verification_service():
    from verification.services import VerificationService  # noqa: PLC0415

    return VerificationService(ledger=get_ledger(), history_limit=settings.VERIFICATION_HISTORY_PAGE_SIZE)


def reset_dependencies() -> None:
    for factory in (
        get_ledger,
        get_artifact_store,
        get_renderer,
        get_directory,
        get_issuance_service,
        get_verification_service,
    ):
        factory.cache_clear()
