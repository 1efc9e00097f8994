"""Prompt templates for storyboards, comic strips and avatar portraits."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .. import logging_manager as log_mgr
from .formats import mime_type_for_path

logger = log_mgr.get_logger().getChild("images.prompting")

COMIC_PANEL_COUNT = 4

_STORYBOARD_TEMPLATE = (
    "You are a helpful assistant that writes short 4-6 panel comic storyboards "
    "from a journal entry.\n\n"
    "Journal Entry:\n{entry}\n\n"
    "Guidelines:\n"
    "- Keep tone light, hopeful, and not too dark; find a positive spin.\n"
    "- Avoid heavy or sensitive content; keep it PG and uplifting.\n"
    "- Privacy: do not reveal personal or identifying information from the journal "
    "entry; do not quote it verbatim. Replace names, places, dates, or unique details "
    "with neutral terms (e.g., 'a friend', 'a cafe', 'today').\n"
    "- Visual style: {style}.\n\n"
    "Return ONLY the transcript lines in exactly this format (no titles, explanations, "
    "or extra text):\n"
    "Panel 1\n"
    "Caption: <short caption>\n"
    "Panel 2\n"
    "Character 1: <dialogue>\n"
    "...\n"
    "Keep each caption/dialogue under 12 words."
)

_COMIC_IMAGE_TEMPLATE = (
    "Task: Render a comic strip image from the storyboard below.\n\n"
    "Style: {style}\n\n"
    "Layout:\n"
    "- Exactly {panels} panels arranged in a single horizontal row.\n"
    "- Render captions and dialogue inside speech bubbles or caption boxes.\n"
    "- Keep characters, outfits, colors, and setting visually consistent across panels.\n"
    "- No watermarks, signatures, or UI elements.\n\n"
    "Storyboard:\n{storyboard}"
)

_AVATAR_TEMPLATE = (
    "Task: Render a single character portrait avatar image.\n\n"
    "Framing & Style Guidelines:\n"
    "- Waist-up framing, clean/neutral background, neutral lighting.\n"
    "- Keep character consistent across future images.\n"
    "- Avoid text, watermarks, UI elements.\n"
    "- Illustration vibe: cohesive, appealing, readable at small sizes.\n\n"
    "Output: One portrait image.\n\n"
    "Character Description:\n{description}"
)

IMAGE_ONLY_SUFFIX = (
    "\n\nReturn only the image. Do not include any text in the response."
)


@dataclass(frozen=True, slots=True)
class CharacterReference:
    """Optional protagonist description and reference portrait."""

    description: Optional[str] = None
    image_path: Optional[str] = None

    @property
    def has_description(self) -> bool:
        return bool((self.description or "").strip())


def build_storyboard_prompt(entry_text: str, style: str) -> str:
    """Return the text-model instruction that turns an entry into a storyboard."""

    return _STORYBOARD_TEMPLATE.format(entry=entry_text, style=style or "comic")


def build_comic_image_prompt(storyboard: str, style: str, *, panels: int = COMIC_PANEL_COUNT) -> str:
    return _COMIC_IMAGE_TEMPLATE.format(
        storyboard=storyboard.strip(),
        style=style or "comic",
        panels=panels,
    )


def build_avatar_prompt(description: str) -> str:
    return _AVATAR_TEMPLATE.format(description=description.strip())


def with_character_consistency(prompt: str, reference: Optional[CharacterReference], *, scope: str) -> str:
    """Append the protagonist description, if any, to ``prompt``.

    ``scope`` names what must stay consistent, e.g. ``"panels"`` or ``"images"``.
    """

    if reference is None or not reference.has_description:
        return prompt
    return (
        f"{prompt}\n\nCharacter consistency: The protagonist must match this "
        f"description consistently across {scope}.\n{reference.description.strip()}"
    )


def load_reference_part(reference: Optional[CharacterReference]) -> Optional[dict[str, Any]]:
    """Return an ``inlineData`` request part for the reference portrait.

    Missing or unreadable files are skipped with a debug log.
    """

    if reference is None or not reference.image_path:
        return None
    path = Path(reference.image_path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.debug(
            "Reference portrait unavailable: %s",
            exc,
            extra={"event": "images.reference.unreadable", "path": str(path)},
        )
        return None
    return {
        "inlineData": {
            "mimeType": mime_type_for_path(path),
            "data": base64.b64encode(data).decode("ascii"),
        }
    }


__all__ = [
    "COMIC_PANEL_COUNT",
    "CharacterReference",
    "IMAGE_ONLY_SUFFIX",
    "build_avatar_prompt",
    "build_comic_image_prompt",
    "build_storyboard_prompt",
    "load_reference_part",
    "with_character_consistency",
]
