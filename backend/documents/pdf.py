from __future__ import annotations

from urllib.parse import urlparse


PDF_BASE_CSS = """
@page {
    size: A4;
    margin: 18mm 16mm 42mm 16mm;
    @bottom-right {
        content: "Page " counter(page);
        font-size: 8pt;
        color: #64748b;
    }
}

html, body {
    font-family: "Helvetica", "Arial", sans-serif;
    font-size: 11pt;
    color: #0f172a;
}

h1, h2, h3 { margin: 0 0 8px 0; }
p { margin: 0 0 6px 0; }

table { width: 100%; border-collapse: collapse; }
th, td { padding: 5px 8px; border: 1px solid #e2e8f0; text-align: left; }
th { background: #f8fafc; }
"""


class WeasyPrintUnavailableError(RuntimeError):
    pass


def weasyprint_url_fetcher(url: str):
    """Resolve embedded resources.

    Only data: and file: URLs are allowed; remote http(s) URLs are blocked.
    """

    parsed = urlparse(url)
    if parsed.scheme in {"http", "https", "ftp"}:
        raise ValueError("Remote URLs are not allowed in PDF rendering")

    from weasyprint.urls import default_url_fetcher  # noqa: PLC0415

    return default_url_fetcher(url)


def render_pdf_bytes_from_html(*, html: str, base_url: str | None = None, extra_css: str = "") -> bytes:
    """Render PDF bytes using WeasyPrint with safe URL fetching."""

    try:
        from weasyprint import CSS, HTML  # noqa: PLC0415
    except (ImportError, OSError) as e:  # pragma: no cover
        raise WeasyPrintUnavailableError(
            "WeasyPrint is not available in this environment (missing system libraries such as Pango). "
            "See https://doc.courtbouillon.org/weasyprint/stable/first_steps.html#installation"
        ) from e

    stylesheets = [CSS(string=PDF_BASE_CSS)]
    if extra_css:
        stylesheets.append(CSS(string=extra_css))

    return HTML(
        string=html,
        base_url=base_url,
        url_fetcher=weasyprint_url_fetcher,
    ).write_pdf(stylesheets=stylesheets)
