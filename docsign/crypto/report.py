"""
Validation report exporters. Pure formatters over a ValidationResult.
"""

from docsign.common.models import ValidationResult
from docsign.common.utils import format_date


def _yes_no(value) -> str:
    return "YES" if value else "NO"


def export_validation_result(result: ValidationResult) -> str:
    """Serialize a validation result, including computed status, as indented JSON."""
    return result.model_dump_json(indent=2)


def export_validation_result_as_text(result: ValidationResult) -> str:
    """
    Render a validation result as a plain-text report.

    Args:
        result: Validation result

    Returns:
        Multi-line report
    """
    lines = [
        "=== SIGNATURE VALIDATION REPORT ===",
        "",
        f"Status: {result.status.upper()}",
        f"Valid: {_yes_no(result.valid)}",
        f"Validated At: {format_date(result.timestamp)}",
        "",
    ]

    if result.details.signed_at:
        lines.append(f"Signed At: {format_date(result.details.signed_at)}")
        lines.append("")

    lines.extend([
        "=== VALIDATION DETAILS ===",
        f"Signature Valid: {_yes_no(result.details.signature_valid)}",
        f"Certificate Valid: {_yes_no(result.details.certificate_valid)}",
        f"Chain Valid: {_yes_no(result.details.chain_valid)}",
        "",
    ])

    for title, entries in (("ERRORS", result.errors), ("WARNINGS", result.warnings)):
        if not entries:
            continue
        lines.append(f"=== {title} ===")
        for i, entry in enumerate(entries, 1):
            lines.append(f"{i}. [{entry.code}] {entry.message}")
        lines.append("")

    lines.append("=== END OF REPORT ===")
    return "\n".join(lines)
