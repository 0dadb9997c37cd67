"""Structured profile rejection reasons.

Every rejection carries one code from a fixed catalogue. The code decides the
user-facing message and the fix-it instructions; an admin note is appended to
the instructions and never replaces them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from celestia.moderation.domain.errors import ValidationError

ADMIN_NOTE_HEADER = "\n\nAdditional Note from Admin:\n"


class RejectionCode(str, Enum):
    NO_FACE_PHOTO = "no_face_photo"
    INAPPROPRIATE_PHOTOS = "inappropriate_photos"
    FAKE_PHOTOS = "fake_photos"
    INCOMPLETE_BIO = "incomplete_bio"
    UNDERAGE = "underage"
    SPAM = "spam"
    OFFENSIVE_CONTENT = "offensive_content"
    LOW_QUALITY_PHOTOS = "low_quality_photos"
    CONTACT_INFO_BIO = "contact_info_bio"
    MULTIPLE_ACCOUNTS = "multiple_accounts"


@dataclass(frozen=True, slots=True)
class RejectionTemplate:
    message: str
    fix_instructions: str


_CATALOGUE: dict[RejectionCode, RejectionTemplate] = {
    RejectionCode.NO_FACE_PHOTO: RejectionTemplate(
        message="Your profile needs at least one photo that clearly shows your face.",
        fix_instructions="Upload a recent photo where your face is clearly visible. No sunglasses, masks, or group shots as your main photo.",
    ),
    RejectionCode.INAPPROPRIATE_PHOTOS: RejectionTemplate(
        message="One or more of your photos do not meet our community guidelines.",
        fix_instructions="Remove photos containing nudity, suggestive content, violence, or weapons and upload appropriate replacements.",
    ),
    RejectionCode.FAKE_PHOTOS: RejectionTemplate(
        message="Your photos appear to not be of you.",
        fix_instructions="Upload genuine photos of yourself. Celebrity, stock, or AI-generated images are not allowed.",
    ),
    RejectionCode.INCOMPLETE_BIO: RejectionTemplate(
        message="Your profile bio is missing or too short.",
        fix_instructions="Write a bio that tells others about yourself, your interests, and what you are looking for.",
    ),
    RejectionCode.UNDERAGE: RejectionTemplate(
        message="You must be at least 18 years old to use Celestia.",
        fix_instructions="If you believe this is a mistake, verify your age with a valid ID from the verification screen.",
    ),
    RejectionCode.SPAM: RejectionTemplate(
        message="Your profile appears to be promotional or spam.",
        fix_instructions="Remove advertising, links, and promotional content. Profiles must represent a real person looking to connect.",
    ),
    RejectionCode.OFFENSIVE_CONTENT: RejectionTemplate(
        message="Your profile contains content that violates our community guidelines.",
        fix_instructions="Remove hateful, harassing, or offensive language from your bio and prompts.",
    ),
    RejectionCode.LOW_QUALITY_PHOTOS: RejectionTemplate(
        message="Your photos are too blurry, dark, or small to review.",
        fix_instructions="Upload clear, well-lit, high resolution photos.",
    ),
    RejectionCode.CONTACT_INFO_BIO: RejectionTemplate(
        message="Your bio contains contact information.",
        fix_instructions="Remove phone numbers, email addresses, and social media handles from your bio. Share them in chat once you match.",
    ),
    RejectionCode.MULTIPLE_ACCOUNTS: RejectionTemplate(
        message="It looks like you already have a Celestia account.",
        fix_instructions="Sign in to your existing account instead. Each person may only have one account.",
    ),
}


@dataclass(frozen=True, slots=True)
class RejectionReason:
    code: RejectionCode
    message: str
    fix_instructions: str


def parse_code(raw: str | RejectionCode | None) -> RejectionCode:
    if isinstance(raw, RejectionCode):
        return raw
    value = (raw or "").strip()
    if not value:
        raise ValidationError("reason_code_required")
    try:
        return RejectionCode(value)
    except ValueError as exc:
        raise ValidationError("unknown_reason_code") from exc


def template_for(code: RejectionCode) -> RejectionTemplate:
    return _CATALOGUE[code]


def build_rejection(raw_code: str | RejectionCode | None, admin_note: Optional[str] = None) -> RejectionReason:
    """Resolve a reason code into the stored message and fix instructions."""
    code = parse_code(raw_code)
    template = _CATALOGUE[code]
    instructions = template.fix_instructions
    note = (admin_note or "").strip()
    if note:
        instructions = f"{instructions}{ADMIN_NOTE_HEADER}{note}"
    return RejectionReason(code=code, message=template.message, fix_instructions=instructions)
