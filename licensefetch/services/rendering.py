"""Plain-text rendering of licenses, fetch results, and session summaries."""

from typing import Optional

from licensefetch.schemas.enums import LicenseAction
from licensefetch.schemas.fetch import LicensedFetchResult
from licensefetch.schemas.license import LicenseInfo, SessionSummary
from licensefetch.schemas.pipeline import PipelineResult

PREVIEW_CHARS = 200

_ACTION_MARKERS = {
    LicenseAction.ALLOW: "✅",
    LicenseAction.DENY: "🚫",
    LicenseAction.UNKNOWN: "❓",
}


def format_license_info(license: LicenseInfo, tokens: int = 0) -> str:
    """One-line license description, e.g. '📜 License: ✅ ALLOW | Free | Tracked ✓'."""
    if not license.license_found:
        return "📜 License: Unknown (content used best-effort)"

    parts = [f"{_ACTION_MARKERS[license.action]} {license.action.value.upper()}"]

    if license.distribution is not None:
        parts.append(f"{license.distribution.value} use")

    if license.price is not None and license.price > 0:
        parts.append(f"${license.price:.2f}/1K tokens")
    elif license.price == 0:
        parts.append("Free")

    parts.append(f"Tracked {'✓' if license.license_version_id else '✗'}")

    if license.license_type:
        parts.append(f"Source {license.license_type}")

    if tokens > 0:
        parts.append(f"(~{tokens} tokens)")

    return f"📜 License: {' | '.join(parts)}"


def format_fetched_result(fetched: Optional[LicensedFetchResult]) -> list[str]:
    """Lines describing a direct fetch: status, preview, payment, error."""
    if fetched is None:
        return []

    lines = [f"Fetched Status: {fetched.status} ({fetched.final_url})"]

    if fetched.content_text:
        text = fetched.content_text
        preview = f"{text[:PREVIEW_CHARS]}..." if len(text) > PREVIEW_CHARS else text
        lines.append(f"Fetched Content: {preview}")

    acquire = getattr(fetched, "acquire", None)
    if acquire is not None:
        lines.append(f"x402 Licensed URL: {acquire.licensed_url}")
        lines.append(f"x402 Cost: {acquire.cost:g} {acquire.currency}")

    if fetched.error:
        lines.append(f"Fetch Error: {fetched.error}")

    return lines


def format_session_summary(summary: SessionSummary) -> str:
    lines = [
        "",
        "📊 License Tracking Summary:",
        f"- Total URLs processed: {summary.total_urls}",
        f"- Licensed content: {summary.licensed_content}",
        f"- Unlicensed content: {summary.unlicensed_content}",
        f"- Denied content: {summary.denied_content}",
        f"- Total tokens tracked: {summary.total_tokens:,}",
        f"- Tracking enabled: {'Yes' if summary.tracking_enabled else 'No'}",
    ]
    if summary.errors > 0:
        lines.append(f"- Errors: {summary.errors} (check logs)")
    return "\n".join(lines)


def format_results(results: list[PipelineResult], summary: SessionSummary) -> str:
    """Full per-URL report followed by the session summary."""
    output: list[str] = []
    for index, result in enumerate(results, start=1):
        output.append(f"[{index}] {result.url}")
        output.extend(format_fetched_result(result.fetched))
        if result.license is not None:
            output.append(format_license_info(result.license, result.tokens))
        if result.usage_logged:
            output.append(f"Usage logged: {result.tokens} tokens")
        output.append("")

    output.append(format_session_summary(summary))
    return "\n".join(output)
