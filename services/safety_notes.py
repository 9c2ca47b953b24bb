"""
Audience-specific safety notes
Renders parent and teen prose from structured evaluation findings
"""

from typing import Sequence, Optional, TYPE_CHECKING

from services.safety_rules import Rating

if TYPE_CHECKING:
    from services.safety_evaluator import Finding

PARENT_SAFE_NOTE = "This product appears safe for your child based on the ingredients."
TEEN_SAFE_NOTE = "This product looks good for your age! All the ingredients are gentle and safe."

PARENT_CONSULT = "Consider consulting a dermatologist."
TEEN_SKIP = "We recommend skipping this one."
TEEN_CAUTION = "Use it carefully and watch how your skin reacts."


def concern_text(finding: "Finding") -> str:
    """'<ingredient>: <reason>' line for a single finding"""
    return f"{finding.ingredient}: {finding.reason}"


def render_parent_note(findings: Sequence["Finding"]) -> str:
    """All concerns joined into one note, with a consultation recommendation"""
    if not findings:
        return PARENT_SAFE_NOTE
    concerns = "; ".join(concern_text(f) for f in findings)
    return f"This product contains: {concerns}. {PARENT_CONSULT}"


def headline_finding(findings: Sequence["Finding"], rating: Rating) -> Optional["Finding"]:
    """First finding at the overall rating, falling back to the first finding"""
    if not findings:
        return None
    for finding in findings:
        if finding.rating == rating:
            return finding
    return findings[0]


def render_teen_note(findings: Sequence["Finding"], rating: Rating) -> str:
    """
    Short note for the child/teen: one headline concern plus a directive.

    The headline is the first finding as severe as the overall rating, not
    simply the first concern in label order. A mild concern listed before an
    avoid finding is therefore never the one shown.
    """
    headline = headline_finding(findings, rating)
    if headline is None:
        return TEEN_SAFE_NOTE
    directive = TEEN_SKIP if rating is Rating.AVOID else TEEN_CAUTION
    return f"Heads up! {concern_text(headline)}. {directive}"
